from __future__ import annotations

import logging
from typing import Protocol

import httpx

from core.config import settings
from domain.errors import IntakeError
from domain.models import Message, MessageStatus

logger = logging.getLogger(__name__)

DELIVERED = {"sent", "delivered"}
NOT_DELIVERED = {"rejected", "bounced", "soft-bounced", "hard-bounced", "invalid", "spam"}


class MessageProviderError(IntakeError): ...


def map_provider_status(status: str) -> MessageStatus:
    s = (status or "").strip().lower()
    if s in DELIVERED:
        return MessageStatus.DELIVERED
    if s in NOT_DELIVERED:
        return MessageStatus.NOT_DELIVERED
    return MessageStatus.PENDING  # queued / scheduled / unknown


class MessageProvider(Protocol):
    def send(self, message: Message) -> str: ...


class HttpMessageProvider:
    """Transactional-mail HTTP API; delivery results come back through the webhook."""

    def __init__(self, base_url: str, api_key: str, timeout_s: float = 10.0) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout_s = timeout_s

    def payload(self, message: Message) -> dict:
        return {
            "key": self.api_key,
            "message": {
                "subject": message.subject,
                "html": message.body,
                "from_name": message.from_name,
                "to": [{"email": r.email, "type": r.type.value} for r in message.recipients],
                # echoed back on the delivery callback
                "metadata": {
                    **message.metadata,
                    "message_id": message.id,
                    "company_id": message.company_id,
                    "dashboard_id": message.dashboard_id,
                    "applicant_id": message.applicant_id,
                },
            },
        }

    def send(self, message: Message) -> str:
        url = f"{self.base_url}/messages/send.json"
        try:
            with httpx.Client(timeout=self.timeout_s) as client:
                r = client.post(url, json=self.payload(message))
            r.raise_for_status()
            data = r.json()
        except Exception as e:  # noqa: BLE001
            raise MessageProviderError(f"send failed for {message.id}: {e}") from e
        first = data[0] if isinstance(data, list) and data else data or {}
        return str(first.get("_id") or first.get("id") or message.id)


class NullMessageProvider:
    """Used when no provider is configured: logs instead of sending."""

    def send(self, message: Message) -> str:
        logger.info("message %s not sent (no provider configured): %s", message.id, message.subject)
        return message.id


def build_provider() -> MessageProvider:
    if settings.MESSAGE_PROVIDER_URL:
        return HttpMessageProvider(
            settings.MESSAGE_PROVIDER_URL,
            settings.MESSAGE_PROVIDER_KEY,
            timeout_s=settings.MESSAGE_TIMEOUT_S,
        )
    return NullMessageProvider()
