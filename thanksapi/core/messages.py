"""승인된 감사 메시지 목록 (표시용)"""

import random
from typing import Optional, Tuple

THANK_YOU_MESSAGES: Tuple[str, ...] = (
    "Thank you for the excellent service!",
    "Thanks for going above and beyond!",
    "Really appreciate your help today!",
    "Great work, thank you so much!",
    "Thanks for being so professional and friendly!",
)

TOA_MESSAGES: Tuple[str, ...] = (
    "Here's a little token of appreciation for your amazing work!",
    "You earned this! Thanks for the outstanding job.",
    "Sending some TOA your way for a job well done!",
    "Your skill and care made my day. Thank you!",
    "A well-deserved thank you for fantastic service!",
)


def pick_message(messages: Tuple[str, ...], rng: Optional[random.Random] = None) -> str:
    chooser = rng or random
    return chooser.choice(messages)
