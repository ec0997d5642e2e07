from fastapi import APIRouter, Depends, Header, Request
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from app.api.deps import get_db
from app.schemas.payment import WebhookAck
from app.services import webhook as webhook_service

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post("/stripe", response_model=WebhookAck)
async def stripe_webhook(
    request: Request,
    stripe_signature: str | None = Header(None),
    db: Session = Depends(get_db),
):
    """
    Payment processor callback. The raw body is needed for signature verification.
    """
    payload = await request.body()
    return await run_in_threadpool(webhook_service.handle_event, db, payload, stripe_signature)
