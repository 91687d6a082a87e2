from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class NotificationKind(str, Enum):
    THANK_YOU = "thank_you"
    TOA_RECEIVED = "toa_received"
    TOA_SENT = "toa_sent"
    POINTS_CONVERTED = "points_converted"


class NotificationEvent(BaseModel):
    """커밋 이후 발송되는 알림 이벤트"""

    recipient_address: str
    template_kind: NotificationKind
    parameters: Dict[str, Any] = Field(default_factory=dict)
    # FIFO 큐 중복 제거용 (보통 거래 ID + 종류)
    deduplication_id: Optional[str] = None
