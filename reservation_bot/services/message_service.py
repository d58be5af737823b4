"""
LINE message handling
Turns webhook events into reply text. Messages starting with ``/`` are
capacity commands, honored only for the configured operator user ids.
Everything else gets a canned reply pointing at the booking pages.
"""

import logging
from typing import Any, Dict, List, Optional

from ..config.settings import Settings, settings as default_settings
from .admission_service import AdmissionService
from .line_client import LineReplyClient

logger = logging.getLogger(__name__)

RESERVE_KEYWORDS = ("予約", "reserve", "book")
MANAGE_KEYWORDS = ("確認", "変更", "キャンセル", "confirm", "change", "cancel")
HOURS_KEYWORDS = ("営業", "時間", "hours", "open")

BUSINESS_HOURS_TEXT = (
    "【営業時間】\n月〜金: 11:00〜22:00\n土日祝: 10:00〜23:00\n\n"
    "【定休日】\n年中無休（年末年始を除く）\n\nご予約お待ちしております！"
)


class MessageService:
    """Reply logic for LINE webhook events"""

    def __init__(self, admission: AdmissionService, client: Optional[LineReplyClient] = None,
                 config: Optional[Settings] = None):
        self.admission = admission
        self.config = config or default_settings
        self.client = client or LineReplyClient(self.config)

    @property
    def liff_url(self) -> str:
        return f"https://liff.line.me/{self.config.liff_id}"

    def _welcome_text(self) -> str:
        return (
            "友だち追加ありがとうございます！\n\n"
            "【ご予約はこちら】\n"
            f"📱 LINE内で予約（おすすめ）\n{self.liff_url}\n\n"
            f"🌐 ブラウザで予約\n{self.config.booking_page_url}\n\n"
            "予約の確認・変更も承っております。"
        )

    def _reserve_text(self) -> str:
        return (
            "ご予約はこちらから：\n\n"
            f"📱 LINE内で予約（おすすめ）\n{self.liff_url}\n\n"
            f"🌐 ブラウザで予約\n{self.config.booking_page_url}\n\n"
            f"📊 管理画面\n{self.config.admin_page_url}"
        )

    def _manage_text(self) -> str:
        return f"予約の確認・変更・キャンセル：\n\n📊 管理画面\n{self.config.admin_page_url}"

    def _default_text(self) -> str:
        return (
            "メッセージありがとうございます！\n\n"
            f"【ご予約】\n📱 LINE内で予約\n{self.liff_url}\n\n"
            f"【予約管理】\n📊 管理画面\n{self.config.admin_page_url}\n\n"
            "何かご不明な点がございましたら、「予約」「確認」「営業時間」などとお送りください。"
        )

    def is_operator(self, user_id: Optional[str]) -> bool:
        return bool(user_id) and user_id in self.config.line_operator_user_ids

    def reply_text(self, text: str, user_id: Optional[str], store_id: str) -> str:
        """Reply for one text message"""
        stripped = text.strip()
        if stripped.startswith("/"):
            if self.is_operator(user_id):
                return self.admission.apply_command(stripped, user_id, store_id).message
            logger.warning("Ignoring command from non-operator LINE user %s", user_id)
            return self._default_text()

        lowered = stripped.lower()
        if any(keyword in lowered for keyword in RESERVE_KEYWORDS):
            return self._reserve_text()
        if any(keyword in lowered for keyword in MANAGE_KEYWORDS):
            return self._manage_text()
        if any(keyword in lowered for keyword in HOURS_KEYWORDS):
            return BUSINESS_HOURS_TEXT
        return self._default_text()

    def handle_event(self, event: Dict[str, Any], store_id: Optional[str] = None) -> Optional[str]:
        """
        Reply text for one webhook event, or None when the event needs none
        """
        store_id = store_id or self.config.default_store_id
        event_type = event.get("type")
        if event_type == "follow":
            return self._welcome_text()

        message = event.get("message") or {}
        if event_type == "message" and message.get("type", "text") == "text" and message.get("text"):
            user_id = (event.get("source") or {}).get("userId")
            return self.reply_text(message["text"], user_id, store_id)
        return None

    def handle_events(self, events: List[Dict[str, Any]], store_id: Optional[str] = None) -> int:
        """
        Handle every event of a webhook call and send the replies

        Returns:
            int: number of replies LINE accepted
        """
        sent = 0
        for event in events:
            text = self.handle_event(event, store_id)
            reply_token = event.get("replyToken")
            if text is None or not reply_token:
                continue
            if self.client.reply(reply_token, [text]):
                sent += 1
        logger.info("Webhook handled %d event(s), %d reply(ies) sent", len(events), sent)
        return sent
