import requests

from ..services.line_client import LineReplyClient
from ..services.message_service import BUSINESS_HOURS_TEXT, MessageService
from .conftest import OPERATOR_LINE_ID, STORE


class RecordingClient(LineReplyClient):
    def __init__(self, config):
        super().__init__(config)
        self.sent = []

    @property
    def configured(self) -> bool:
        return True

    def reply(self, reply_token, texts):
        self.sent.append((reply_token, texts))
        return True


class FakeResponse:
    def __init__(self, status_code=200, text="{}"):
        self.status_code = status_code
        self.text = text


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response or FakeResponse()
        self.error = error
        self.posts = []

    def post(self, url, json=None, headers=None, timeout=None):
        self.posts.append({"url": url, "json": json, "headers": headers, "timeout": timeout})
        if self.error is not None:
            raise self.error
        return self.response


def text_event(text, reply_token="reply-1", user_id="U123"):
    return {
        "type": "message",
        "replyToken": reply_token,
        "source": {"type": "user", "userId": user_id},
        "message": {"type": "text", "text": text},
    }


class TestMessageService:

    def test_follow_event_welcomes_with_liff_link(self, admission, test_settings):
        service = MessageService(admission, RecordingClient(test_settings), test_settings)
        reply = service.handle_event({"type": "follow", "replyToken": "r"})
        assert f"https://liff.line.me/{test_settings.liff_id}" in reply
        assert test_settings.booking_page_url in reply

    def test_keywords(self, admission, test_settings):
        service = MessageService(admission, RecordingClient(test_settings), test_settings)
        assert test_settings.booking_page_url in service.handle_event(text_event("予約したい"))
        assert test_settings.admin_page_url in service.handle_event(text_event("キャンセルしたい"))
        assert service.handle_event(text_event("営業時間は？")) == BUSINESS_HOURS_TEXT
        assert "メッセージありがとうございます" in service.handle_event(text_event("こんにちは"))

    def test_operator_command_creates_rule(self, admission, test_settings):
        service = MessageService(admission, RecordingClient(test_settings), test_settings)
        event = text_event("/limit sat,sun lunch 5/h", user_id=OPERATOR_LINE_ID)
        reply = service.handle_event(event, STORE)
        assert reply.startswith("✅ Capacity rule #")
        [rule] = admission.list_rules(STORE)
        assert rule.created_by == OPERATOR_LINE_ID

    def test_bad_command_replies_with_diagnostic(self, admission, test_settings):
        service = MessageService(admission, RecordingClient(test_settings), test_settings)
        reply = service.handle_event(text_event("/limit xyz 5/h", user_id=OPERATOR_LINE_ID), STORE)
        assert "xyz" in reply
        assert admission.list_rules(STORE) == []

    def test_command_from_customer_is_ignored(self, admission, test_settings):
        service = MessageService(admission, RecordingClient(test_settings), test_settings)
        reply = service.handle_event(text_event("/stop all 00:00-", user_id="U-customer"), STORE)
        assert "メッセージありがとうございます" in reply
        assert admission.list_rules(STORE) == []

    def test_command_without_sender_is_ignored(self, admission, test_settings):
        service = MessageService(admission, RecordingClient(test_settings), test_settings)
        event = text_event("/limit all 5")
        del event["source"]
        service.handle_event(event, STORE)
        assert admission.list_rules(STORE) == []

    def test_non_text_events_get_no_reply(self, admission, test_settings):
        service = MessageService(admission, RecordingClient(test_settings), test_settings)
        assert service.handle_event({"type": "message", "message": {"type": "sticker"}}) is None
        assert service.handle_event({"type": "unfollow"}) is None

    def test_handle_events_sends_one_reply_per_event(self, admission, test_settings):
        client = RecordingClient(test_settings)
        service = MessageService(admission, client, test_settings)
        sent = service.handle_events([text_event("予約", "t1"), text_event("hours", "t2"),
                                      {"type": "unfollow"}])
        assert sent == 2
        assert [token for token, _ in client.sent] == ["t1", "t2"]


class TestLineReplyClient:

    def test_skips_without_token(self, test_settings):
        session = FakeSession()
        client = LineReplyClient(test_settings, session=session)
        assert client.reply("r", ["hi"]) is False
        assert session.posts == []

    def test_posts_reply(self, test_settings):
        config = test_settings.model_copy(update={"line_channel_access_token": "secret"})
        session = FakeSession()
        assert LineReplyClient(config, session=session).reply("r", ["hi"]) is True
        [post] = session.posts
        assert post["url"] == config.line_reply_url
        assert post["json"] == {"replyToken": "r", "messages": [{"type": "text", "text": "hi"}]}
        assert post["headers"]["Authorization"] == "Bearer secret"
        assert post["timeout"] == config.collaborator_timeout_seconds

    def test_transport_failure_is_reported(self, test_settings):
        config = test_settings.model_copy(update={"line_channel_access_token": "secret"})
        session = FakeSession(error=requests.ConnectionError("unreachable"))
        assert LineReplyClient(config, session=session).reply("r", ["hi"]) is False

    def test_non_200_is_reported(self, test_settings):
        config = test_settings.model_copy(update={"line_channel_access_token": "secret"})
        session = FakeSession(response=FakeResponse(400, '{"message":"Invalid reply token"}'))
        assert LineReplyClient(config, session=session).reply("r", ["hi"]) is False
