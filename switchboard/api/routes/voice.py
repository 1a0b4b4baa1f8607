"""Telephony host WebSocket endpoint."""

from fastapi import APIRouter, WebSocket

from switchboard.api.dependencies import VoiceAdapterDep
from switchboard.observability.logging import get_logger
from switchboard.transports.jambonz import SUBPROTOCOL, HostProtocolError, JambonzSession

logger = get_logger(__name__)

router = APIRouter()


@router.websocket("/llm-streaming")
async def llm_streaming(websocket: WebSocket, adapter: VoiceAdapterDep) -> None:
    requested = websocket.scope.get("subprotocols") or []
    await websocket.accept(subprotocol=SUBPROTOCOL if SUBPROTOCOL in requested else None)

    host = JambonzSession(websocket)
    try:
        await host.accept()
    except HostProtocolError as e:
        logger.warning("voice_host_rejected", error=str(e))
        await host.close()
        return

    await adapter.serve(host)
