"""Chat WebSocket endpoint."""

from fastapi import APIRouter, Query, WebSocket

from switchboard.api.dependencies import ChatAdapterDep

router = APIRouter()


@router.websocket("/chat-streaming")
async def chat_streaming(
    websocket: WebSocket,
    adapter: ChatAdapterDep,
    bot_id: str | None = Query(default=None),
) -> None:
    await adapter.serve(websocket, bot_id)
