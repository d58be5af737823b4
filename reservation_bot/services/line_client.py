"""
LINE Messaging API reply client
"""

import logging
from typing import List, Optional

import requests

from ..config.settings import Settings, settings as default_settings

logger = logging.getLogger(__name__)

# LINE accepts at most five messages per reply
MAX_REPLY_MESSAGES = 5


class LineReplyClient:
    """Posts reply messages for a webhook event's reply token"""

    def __init__(self, config: Optional[Settings] = None, session: Optional[requests.Session] = None):
        self.config = config or default_settings
        self.session = session or requests.Session()

    @property
    def configured(self) -> bool:
        return bool(self.config.line_channel_access_token)

    def reply(self, reply_token: str, texts: List[str]) -> bool:
        """
        Send ``texts`` as the reply to one event

        Returns:
            bool: True when LINE accepted the reply. Failures are logged and
            reported as False; the webhook must still answer 200.
        """
        if not self.configured:
            logger.error("LINE_CHANNEL_ACCESS_TOKEN not set, skipping LINE reply")
            return False
        if not reply_token or not texts:
            return False

        payload = {
            "replyToken": reply_token,
            "messages": [{"type": "text", "text": text} for text in texts[:MAX_REPLY_MESSAGES]],
        }
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.config.line_channel_access_token}",
        }
        try:
            response = self.session.post(
                self.config.line_reply_url,
                json=payload,
                headers=headers,
                timeout=self.config.collaborator_timeout_seconds,
            )
        except requests.RequestException as e:
            logger.error("LINE reply failed: %s", e)
            return False

        if response.status_code != 200:
            logger.error("LINE reply rejected: %s %s", response.status_code, response.text)
            return False
        logger.debug("LINE reply sent")
        return True
