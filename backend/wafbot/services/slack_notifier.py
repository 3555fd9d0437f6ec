"""
Slack Notifier
Posts messages with chat.postMessage, suppressing repeats per channel
"""

import json
import logging
from typing import Any, Dict, Optional

import httpx

from wafbot.core.exceptions import NotificationError
from wafbot.core.logging_config import preview
from wafbot.core.prometheus_metrics import notifications_total
from wafbot.services.dedup_cache import DedupCache, create_outbound_notification_cache

logger = logging.getLogger(__name__)

SLACK_POST_MESSAGE_URL = "https://slack.com/api/chat.postMessage"
RESULT_MARKER = "*result:*"
SIGNATURE_MIN_LENGTH = 50


def message_signature(text: str) -> str:
    """
    Full text for short messages. Longer messages that carry a
    ``*Result:*`` line are reduced to that line's row count, so reruns of
    the same question collapse onto one signature.
    """
    if len(text) > SIGNATURE_MIN_LENGTH:
        idx = text.lower().find(RESULT_MARKER)
        if idx != -1:
            count_part = text[idx + len(RESULT_MARKER):].split("\n", 1)[0]
            return f"WAF result:{count_part}"
    return text


def token_preview(token: str) -> str:
    return f"{token[:4]}..." if len(token) >= 4 else "****"


class SlackNotifier:
    """PostMessage(channel, text); raises NotificationError on any delivery failure"""

    def __init__(
        self,
        token: Optional[str],
        cache: Optional[DedupCache] = None,
        api_url: str = SLACK_POST_MESSAGE_URL,
        timeout_seconds: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.token = token
        self.cache = cache or create_outbound_notification_cache()
        self.api_url = api_url
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    async def post_message(self, channel: str, text: str) -> bool:
        """Returns False when the message was suppressed as a duplicate"""
        msg_hash = f"{channel}:{message_signature(text)}"
        logger.info(f"Message signature: {preview(msg_hash)}")

        if not self.cache.should_process(msg_hash):
            logger.info(f"Suppressing duplicate Slack message: channel {channel}")
            notifications_total.labels(result="suppressed").inc()
            return False

        if not self.token:
            notifications_total.labels(result="error").inc()
            raise NotificationError("Slack token is empty. Unable to send message to Slack.")

        payload = {"channel": channel, "text": text}
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.token}",
        }
        logger.info(f"Sending to Slack - Channel: {channel}, Token: {token_preview(self.token)}")
        logger.info(f"Message content preview: {preview(json.dumps(payload, ensure_ascii=False))}")

        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self._transport) as client:
                resp = await client.post(self.api_url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            notifications_total.labels(result="error").inc()
            raise NotificationError(f"Slack request error: {e}") from e

        logger.info(f"Slack API response - Status: {resp.status_code}, Body length: {len(resp.content)}")
        body = self._parse_response(resp)

        if body.get("ok") is True:
            logger.info(f"Successfully sent Slack message (signature: {preview(msg_hash)})")
            notifications_total.labels(result="sent").inc()
            return True

        error = body.get("error") if isinstance(body.get("error"), str) else "Unknown error"
        notifications_total.labels(result="error").inc()
        raise NotificationError(
            f"Slack API error: {error}",
            details={"channel": channel, "status_code": resp.status_code},
        )

    @staticmethod
    def _parse_response(resp: httpx.Response) -> Dict[str, Any]:
        try:
            body = resp.json()
        except ValueError as e:
            notifications_total.labels(result="error").inc()
            raise NotificationError(f"Failed to parse Slack response: {e}") from e
        if not isinstance(body, dict):
            notifications_total.labels(result="error").inc()
            raise NotificationError("Failed to parse Slack response: not a JSON object")
        return body
