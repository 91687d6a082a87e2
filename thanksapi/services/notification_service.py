"""
알림 발송

서비스는 원자적 작업 단위 동안 NotificationEvent를 모아 두었다가
커밋이 끝난 뒤 dispatch_all()로 보냅니다. 발송 실패는 로그만 남기고
삼키며, 이미 커밋된 원장에는 영향을 주지 않습니다.
"""

import logging
from typing import Iterable, Optional

from thanksapi.config import Settings
from thanksapi.providers.queue.events import NotificationEvent
from thanksapi.providers.queue.sqs import SQSClient

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """알림 발송 인터페이스"""

    def dispatch(self, event: NotificationEvent) -> bool:
        raise NotImplementedError

    def dispatch_all(self, events: Iterable[NotificationEvent]) -> int:
        """모든 이벤트를 발송하고 성공 건수를 반환 (예외를 전파하지 않음)"""
        sent = 0
        for event in events:
            if not event.recipient_address:
                logger.info(
                    f"Skipping {event.template_kind.value} notification: no recipient address"
                )
                continue
            try:
                if self.dispatch(event):
                    sent += 1
            except Exception as e:
                logger.error(
                    f"Failed to dispatch {event.template_kind.value} notification "
                    f"to {event.recipient_address}: {str(e)}"
                )
        return sent


class LoggingNotificationDispatcher(NotificationDispatcher):
    """큐가 설정되지 않은 환경용 - 로그로만 남김"""

    def dispatch(self, event: NotificationEvent) -> bool:
        logger.info(
            f"[Notification] {event.template_kind.value} -> {event.recipient_address}: {event.parameters}"
        )
        return True


class SqsNotificationDispatcher(NotificationDispatcher):
    """SQS 큐에 알림 작업을 적재 (메일 발송은 소비자 쪽 책임)"""

    def __init__(self, sqs_client: SQSClient, queue_url: str):
        self.sqs_client = sqs_client
        self.queue_url = queue_url

    def dispatch(self, event: NotificationEvent) -> bool:
        self.sqs_client.send_message(
            queue_url=self.queue_url,
            message_body=event.model_dump(mode="json"),
            message_group_id=event.recipient_address,
            deduplication_id=event.deduplication_id,
        )
        logger.info(
            f"Queued {event.template_kind.value} notification for {event.recipient_address}"
        )
        return True


def build_dispatcher(
    settings: Settings, sqs_client: Optional[SQSClient] = None
) -> NotificationDispatcher:
    """설정에 따라 발송기 선택"""
    if settings.NOTIFICATION_QUEUE_URL:
        return SqsNotificationDispatcher(
            sqs_client or SQSClient(settings), settings.NOTIFICATION_QUEUE_URL
        )
    return LoggingNotificationDispatcher()
