from fastapi import APIRouter, Depends

from apps.api.deps import get_workflow
from apps.api.schemas import DeliveryCallback

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post("/messages")
def message_delivery(payload: DeliveryCallback, wf=Depends(get_workflow)):
    """Asynchronous delivery result from the message provider."""
    message = wf.messages.handle_callback(
        payload.message_id,
        payload.status,
        reject_reason=payload.reject_reason,
        analytics=payload.analytics,
        provider_id=payload.provider_id,
    )
    if message is None:
        return {"message_id": payload.message_id, "applied": False}
    return {
        "message_id": message.id,
        "applied": True,
        "delivery_status": message.delivery_status.value,
    }
