from typing import List, Union
from fastapi import APIRouter, Body, Depends, HTTPException
from .deps import get_ingestor
from .schemas import WebhookResponse
from ..config import get_settings
from ..event_models import Event
from ..services.event_store import EventIngestor

router = APIRouter(tags=["webhook"])
settings = get_settings()


@router.post("/webhook", response_model=WebhookResponse, status_code=202)
async def receive_events(
    body: Union[Event, List[Event]] = Body(...),
    ingestor: EventIngestor = Depends(get_ingestor),
):
    """Accept one event or a batch from the advertising platforms."""
    events = body if isinstance(body, list) else [body]
    if len(events) > settings.MAX_BATCH_SIZE:
        raise HTTPException(413, detail=f"Batch exceeds maximum of {settings.MAX_BATCH_SIZE} events")

    accepted = await ingestor.ingest(events)
    return WebhookResponse(status="ok", accepted=accepted)
