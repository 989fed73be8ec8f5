import httpx
import pytest

from zoho_desk_mcp.notifications import (
    EXCERPT_LIMIT,
    NotificationPayload,
    TicketSummary,
    WebhookNotifier,
    build_message,
    make_excerpt,
    strip_markup,
)

BASE_URL = "https://desk.zoho.com/api/v1"
WEBHOOK_URL = "https://hooks.slack.com/services/T000/B000/XXXX"

TICKET = {"id": "42", "ticketNumber": "1042", "subject": "Refund request", "status": "Open", "priority": "High"}


class TestFormatting:
    def test_strip_markup(self):
        html = "<div><p>Hello&nbsp;<b>Jane</b>,</p><p>Your refund &amp; credit are done.<br/>Thanks</p></div>"
        assert strip_markup(html) == "Hello\xa0Jane,\nYour refund & credit are done.\nThanks"

    def test_strip_markup_plain_text_untouched(self):
        assert strip_markup("just text") == "just text"

    def test_excerpt_is_truncated(self):
        excerpt = make_excerpt("<p>" + "a" * 2000 + "</p>")
        assert len(excerpt) == EXCERPT_LIMIT
        assert excerpt.endswith("...")

    def test_short_excerpt_kept(self):
        assert make_excerpt("<i>short</i>") == "short"

    def test_summary_from_ticket(self):
        summary = TicketSummary.from_ticket("42", TICKET)
        assert summary == TicketSummary(number="1042", subject="Refund request", status="Open", priority="High")

    def test_summary_fallbacks(self):
        summary = TicketSummary.from_ticket("42", {"subject": None})
        assert summary.number == "42"
        assert summary.subject == "(unknown subject)"
        assert summary.status == "Unknown"

    def test_build_message_blocks(self):
        payload = NotificationPayload(
            kind="reply",
            ticket=TicketSummary(number="1042", subject="Refund request", status="Open", priority="High"),
            text_excerpt="Your refund is done.",
            is_public=True,
        )

        message = build_message(payload)

        assert message["text"] == "Reply sent on ticket #1042: Refund request"
        blocks = message["blocks"]
        assert blocks[0]["type"] == "header"
        assert blocks[0]["text"]["text"] == "Reply sent on ticket #1042"
        fields = [field["text"] for field in blocks[1]["fields"]]
        assert "*Subject:*\nRefund request" in fields
        assert "*Priority:*\nHigh" in fields
        assert "*Visibility:*\nPublic" in fields
        assert blocks[2]["text"]["text"] == ">>> Your refund is done."
        assert blocks[-1]["type"] == "context"

    def test_build_message_private_comment(self):
        payload = NotificationPayload(kind="comment", ticket=TicketSummary(), text_excerpt="", is_public=False)

        message = build_message(payload)

        assert message["blocks"][0]["text"]["text"].startswith("Internal note added")
        assert all(block.get("text", {}).get("text", "").find(">>>") == -1 for block in message["blocks"])


class TestWebhookNotifier:
    @pytest.mark.asyncio
    async def test_disabled_without_url(self, httpx_mock, client):
        notifier = WebhookNotifier(None, client)

        assert not notifier.enabled
        assert await notifier.notify("reply", "42", "hi", True) is False
        assert httpx_mock.get_requests() == []

    @pytest.mark.asyncio
    async def test_posts_block_message(self, httpx_mock, client):
        httpx_mock.add_response(url=f"{BASE_URL}/tickets/42", json=TICKET)
        httpx_mock.add_response(url=WEBHOOK_URL, method="POST", text="ok")
        notifier = WebhookNotifier(WEBHOOK_URL, client)

        sent = await notifier.notify("comment", "42", "<p>Checked the logs</p>", True)

        assert sent is True
        request = httpx_mock.get_request(url=WEBHOOK_URL)
        body = request.read().decode()
        assert "Public comment added on ticket #1042" in body
        assert "Checked the logs" in body
        assert "<p>" not in body

    @pytest.mark.asyncio
    async def test_unreachable_webhook_is_swallowed(self, httpx_mock, client):
        httpx_mock.add_response(url=f"{BASE_URL}/tickets/42", json=TICKET)
        httpx_mock.add_exception(httpx.ConnectError("no route to host"), url=WEBHOOK_URL)
        notifier = WebhookNotifier(WEBHOOK_URL, client)

        assert await notifier.notify("reply", "42", "hi", True) is False

    @pytest.mark.asyncio
    async def test_webhook_error_status_is_swallowed(self, httpx_mock, client):
        httpx_mock.add_response(url=f"{BASE_URL}/tickets/42", json=TICKET)
        httpx_mock.add_response(url=WEBHOOK_URL, status_code=404, text="no_service")
        notifier = WebhookNotifier(WEBHOOK_URL, client)

        assert await notifier.notify("reply", "42", "hi", True) is False

    @pytest.mark.asyncio
    async def test_ticket_lookup_failure_still_notifies(self, httpx_mock, client):
        httpx_mock.add_response(url=f"{BASE_URL}/tickets/42", status_code=404, json={})
        httpx_mock.add_response(url=WEBHOOK_URL, method="POST", text="ok")
        notifier = WebhookNotifier(WEBHOOK_URL, client)

        assert await notifier.notify("reply", "42", "hi", False) is True
        body = httpx_mock.get_request(url=WEBHOOK_URL).read().decode()
        assert "ticket #42" in body
