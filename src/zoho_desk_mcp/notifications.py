"""Slack-style webhook notifications for ticket replies and comments.

Delivery is best effort: every failure is logged and dropped so the tool call
that triggered the notification is never affected.
"""

import html
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx

from .client import ZohoDeskClient

logger = logging.getLogger(__name__)

EXCERPT_LIMIT = 500
WEBHOOK_TIMEOUT = 10.0

_TAG_RE = re.compile(r"<[^>]+>")
_BREAK_RE = re.compile(r"<\s*(br|/p|/div|/li)\s*/?>", re.IGNORECASE)
_SPACE_RE = re.compile(r"[ \t\r\f\v]+")


@dataclass(frozen=True)
class TicketSummary:
    number: str = "?"
    subject: str = "(unknown subject)"
    status: str = "Unknown"
    priority: str = "Unknown"

    @classmethod
    def from_ticket(cls, ticket_id: str, data: Any) -> "TicketSummary":
        if not isinstance(data, dict):
            return cls(number=str(ticket_id))
        return cls(
            number=str(data.get("ticketNumber") or ticket_id),
            subject=data.get("subject") or cls.subject,
            status=data.get("status") or cls.status,
            priority=data.get("priority") or cls.priority,
        )


@dataclass(frozen=True)
class NotificationPayload:
    kind: str  # "reply" or "comment"
    ticket: TicketSummary
    text_excerpt: str
    is_public: bool


def strip_markup(text: str) -> str:
    """Turn an HTML fragment into plain text."""
    text = _BREAK_RE.sub("\n", text or "")
    text = html.unescape(_TAG_RE.sub("", text))
    lines = [_SPACE_RE.sub(" ", line).strip() for line in text.splitlines()]
    return "\n".join(line for line in lines if line)


def make_excerpt(text: str, limit: int = EXCERPT_LIMIT) -> str:
    plain = strip_markup(text)
    if len(plain) <= limit:
        return plain
    return plain[: limit - 3].rstrip() + "..."


def build_message(payload: NotificationPayload) -> Dict[str, Any]:
    """Format a payload as a Block Kit message."""
    ticket = payload.ticket
    if payload.kind == "reply":
        title = "Reply sent" if payload.is_public else "Private reply added"
    else:
        title = "Public comment added" if payload.is_public else "Internal note added"
    timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")

    blocks: List[Dict[str, Any]] = [
        {
            "type": "header",
            "text": {
                "type": "plain_text",
                "text": f"{title} on ticket #{ticket.number}",
                "emoji": True,
            },
        },
        {
            "type": "section",
            "fields": [
                {"type": "mrkdwn", "text": f"*Subject:*\n{ticket.subject}"},
                {"type": "mrkdwn", "text": f"*Status:*\n{ticket.status}"},
                {"type": "mrkdwn", "text": f"*Priority:*\n{ticket.priority}"},
                {"type": "mrkdwn", "text": f"*Visibility:*\n{'Public' if payload.is_public else 'Private'}"},
            ],
        },
    ]
    if payload.text_excerpt:
        blocks.append(
            {
                "type": "section",
                "text": {"type": "mrkdwn", "text": f">>> {payload.text_excerpt}"},
            }
        )
    blocks.append(
        {
            "type": "context",
            "elements": [{"type": "mrkdwn", "text": f"Zoho Desk MCP | {timestamp}"}],
        }
    )

    return {
        "text": f"{title} on ticket #{ticket.number}: {ticket.subject}",
        "blocks": blocks,
    }


class WebhookNotifier:
    def __init__(self, webhook_url: Optional[str], client: ZohoDeskClient):
        self.webhook_url = webhook_url
        self.client = client

    @property
    def enabled(self) -> bool:
        return bool(self.webhook_url)

    async def notify(self, kind: str, ticket_id: str, content: str, is_public: bool) -> bool:
        """Post a notification; returns whether the webhook accepted it. Never raises."""
        if not self.enabled:
            return False

        try:
            payload = NotificationPayload(
                kind=kind,
                ticket=await self._ticket_summary(ticket_id),
                text_excerpt=make_excerpt(content),
                is_public=is_public,
            )
            async with httpx.AsyncClient(timeout=WEBHOOK_TIMEOUT) as http:
                response = await http.post(self.webhook_url, json=build_message(payload))
            if not response.is_success:
                logger.warning("Webhook returned HTTP %s for ticket %s", response.status_code, ticket_id)
                return False
            return True
        except Exception as e:
            logger.warning("Failed to send %s notification for ticket %s: %s", kind, ticket_id, e)
            return False

    async def _ticket_summary(self, ticket_id: str) -> TicketSummary:
        response = await self.client.get_ticket(ticket_id)
        if not response.ok:
            logger.warning("Could not load ticket %s for notification", ticket_id)
            return TicketSummary(number=str(ticket_id))
        return TicketSummary.from_ticket(ticket_id, response.data)
