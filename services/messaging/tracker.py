from __future__ import annotations

import logging
import uuid
from typing import Any, Optional

from domain.models import (
    Applicant,
    LatestMessage,
    Message,
    MessageAnalytics,
    MessageResponseData,
    MessageStatus,
    Recipient,
    utcnow,
)
from services.counters import engine as counter_events
from services.counters.engine import CounterEngine
from services.messaging.provider import MessageProvider, map_provider_status
from services.persistence import paths
from services.persistence.repository import Repository

logger = logging.getLogger(__name__)


def render(template: str, **values: str) -> str:
    out = template
    for name, value in values.items():
        out = out.replace("{" + name + "}", value)
    return out


class MessageTracker:
    """
    Outbound messages and their delivery lifecycle:
    Pending -> {Delivered, Not Delivered}, terminal once resolved.
    """

    def __init__(
        self,
        repo: Repository,
        counters: CounterEngine,
        provider: MessageProvider,
        from_name: Optional[str] = None,
    ) -> None:
        self.repo = repo
        self.counters = counters
        self.provider = provider
        self.from_name = from_name

    def send(
        self,
        company_id: str,
        dashboard_id: str,
        applicant_id: str,
        subject: str,
        body: str,
        metadata: Optional[dict[str, Any]] = None,
    ) -> Message:
        """
        Record the message as Pending and point the applicant at it, then hand it
        to the provider. Delivery callbacks may arrive before `provider.send`
        returns. A failed send resolves the message as Not Delivered and re-raises.
        """
        applicant = self.repo.get_applicant(company_id, dashboard_id, applicant_id)
        message = Message(
            id=uuid.uuid4().hex,
            company_id=company_id,
            dashboard_id=dashboard_id,
            applicant_id=applicant_id,
            subject=subject,
            recipients=[Recipient(email=applicant.email)],
            body=body,
            from_name=self.from_name,
            metadata=metadata or {},
        )
        self.repo.save("messages", paths.message_key(company_id, dashboard_id, applicant_id, message.id), message)

        def point_latest(a: Applicant) -> None:
            a.latest_message = LatestMessage(id=message.id, sent_at=message.created_at)

        self.repo.update(
            "applicants", paths.applicant_key(company_id, dashboard_id, applicant_id), Applicant, point_latest
        )
        try:
            self.provider.send(message)
        except Exception as e:
            logger.warning("message %s to applicant %s failed to send: %s", message.id, applicant_id, e)
            self._resolve(
                message,
                MessageResponseData(id=message.id, status="send-failed", reject_reason=str(e)),
                MessageStatus.NOT_DELIVERED,
            )
            raise
        logger.info("message %s sent to applicant %s", message.id, applicant_id)
        return message

    def handle_callback(
        self,
        message_id: str,
        status: str,
        reject_reason: Optional[str] = None,
        analytics: Optional[MessageAnalytics] = None,
        provider_id: Optional[str] = None,
    ) -> Optional[Message]:
        """Apply a delivery callback; returns None when it was a no-op."""
        message = self.repo.find_message(message_id)
        applicant = self.repo.get_applicant(message.company_id, message.dashboard_id, message.applicant_id)
        if applicant.latest_message is None or applicant.latest_message.id != message_id:
            logger.info("callback for superseded message %s ignored", message_id)
            return None
        if message.delivery_status != MessageStatus.PENDING:
            logger.info("message %s already %s", message_id, message.delivery_status.value)
            return None
        response = MessageResponseData(
            id=provider_id or message_id,
            status=status,
            reject_reason=reject_reason,
            analytics=analytics,
        )
        return self._resolve(message, response, map_provider_status(status))

    def _resolve(self, message: Message, response: MessageResponseData, new_status: MessageStatus) -> Message:
        """
        Attach the provider response to a Pending message. A terminal status is
        mirrored onto the applicant and counted once.
        """
        c, d, a = message.company_id, message.dashboard_id, message.applicant_id
        landed: list[bool] = []

        def attach(m: Message) -> None:
            landed.clear()
            if m.delivery_status != MessageStatus.PENDING:
                return
            m.message_response_data = response
            m.updated_at = utcnow()
            if new_status != MessageStatus.PENDING:
                m.delivery_status = new_status
                landed.append(True)

        stored = self.repo.update("messages", paths.message_key(c, d, a, message.id), Message, attach)
        if not landed:
            return stored

        def mirror(ap: Applicant) -> None:
            if ap.latest_message is not None and ap.latest_message.id == message.id:
                ap.latest_message.status = new_status

        self.repo.update("applicants", paths.applicant_key(c, d, a), Applicant, mirror)
        self.counters.emit(c, d, counter_events.message_resolved(message.id))
        logger.info("message %s -> %s", message.id, new_status.value)
        return stored
