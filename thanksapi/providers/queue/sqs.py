import json
from typing import Any, Dict, Optional

import boto3

from thanksapi.config import Settings


class SQSClient:
    def __init__(self, settings: Settings, client: Any = None):
        self.settings = settings
        self.sqs = client or self._build_client()

    def _build_client(self):
        if self.settings.AWS_ACCESS_KEY_ID and self.settings.AWS_SECRET_ACCESS_KEY:
            return boto3.client(
                "sqs",
                region_name=self.settings.AWS_REGION,
                aws_access_key_id=self.settings.AWS_ACCESS_KEY_ID,
                aws_secret_access_key=self.settings.AWS_SECRET_ACCESS_KEY,
                endpoint_url=self.settings.SQS_ENDPOINT_URL,
            )
        return boto3.client(
            "sqs",
            region_name=self.settings.AWS_REGION,
            endpoint_url=self.settings.SQS_ENDPOINT_URL,
        )

    def send_message(
        self,
        queue_url: str,
        message_body: Dict[str, Any],
        message_group_id: Optional[str] = None,
        deduplication_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            "QueueUrl": queue_url,
            "MessageBody": json.dumps(message_body, default=str),
        }
        # FIFO 큐에서만 의미가 있음
        if queue_url.endswith(".fifo"):
            params["MessageGroupId"] = message_group_id or "notifications"
            if deduplication_id:
                params["MessageDeduplicationId"] = deduplication_id
        return self.sqs.send_message(**params)
