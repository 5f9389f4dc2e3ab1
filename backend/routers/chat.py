"""
Chat streaming endpoint.

POST /api/chat validates the request, starts one provider process and streams
its canonical events back as Server-Sent Events. Each frame is
``data: <event json>``; the stream ends with ``data: [DONE]``.
"""

import logging

import anyio
from core.gateway import ChatTurn, StreamGateway
from fastapi import APIRouter, Depends, HTTPException, Request
from schemas.chat import ChatRequest
from sse_starlette.sse import EventSourceResponse

logger = logging.getLogger("ChatRouter")

router = APIRouter()


def get_gateway(request: Request) -> StreamGateway:
    """Get the StreamGateway from app state.

    Raises:
        HTTPException: If the gateway is not configured
    """
    gateway = getattr(request.app.state, "gateway", None)
    if gateway is None:
        raise HTTPException(status_code=500, detail="Stream gateway not configured")
    return gateway


async def stream_turn(turn: ChatTurn):
    """Relay a turn's frames to the client.

    If the client disconnects, sse_starlette cancels this generator; the
    provider process is then terminated before the generator exits.
    """
    try:
        async for payload in turn.frames():
            yield {"data": payload}
    finally:
        if not turn.finished:
            logger.info(f"[Turn {turn.turn_id}] Client disconnected")
            with anyio.CancelScope(shield=True):
                await turn.cancel()


@router.post("/chat")
async def chat(body: ChatRequest, gateway: StreamGateway = Depends(get_gateway)):
    """Run one chat turn and stream its events.

    Request body:
        message, sessionId?, cwd?, permissionMode?, allowedTools?, provider?, model?

    Returns:
        EventSourceResponse streaming canonical events, or HTTP 400
        {"error": ...} if the request is rejected before spawning
    """
    turn = await gateway.open_turn(body)
    logger.info(f"[Turn {turn.turn_id}] Streaming {turn.provider.name} response")
    return EventSourceResponse(stream_turn(turn), sep="\n")
