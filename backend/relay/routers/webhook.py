import json
import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import PlainTextResponse

from ..broadcast import BroadcastEngine
from ..deps import get_engine

router = APIRouter(prefix="/webhook", tags=["webhook"])
logger = logging.getLogger(__name__)


def _reject_constant(name: str) -> Any:
    raise ValueError(f"{name} is not valid JSON")


async def _read_json(request: Request) -> Any:
    body = await request.body()
    try:
        return json.loads(body, parse_constant=_reject_constant)
    except (ValueError, RecursionError):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid JSON body")


@router.post("", response_class=PlainTextResponse)
async def handle_webhook(payload: Any = Depends(_read_json), engine: BroadcastEngine = Depends(get_engine)):
    try:
        await engine.broadcast(payload)
    except Exception:
        logger.exception("Error broadcasting message")
        return PlainTextResponse(
            "Error broadcasting message", status_code=status.HTTP_500_INTERNAL_SERVER_ERROR
        )
    return PlainTextResponse("Message broadcasted")


@router.post("/{connection_id}", response_class=PlainTextResponse)
async def handle_direct_webhook(
    connection_id: int,
    payload: Any = Depends(_read_json),
    engine: BroadcastEngine = Depends(get_engine),
):
    try:
        await engine.send_to(connection_id, payload)
    except Exception:
        logger.exception("Error sending message to connection %s", connection_id)
        return PlainTextResponse("Error sending message", status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)
    return PlainTextResponse("Message sent")
