"""
Voice WebSocket Endpoint.
Bridges a browser microphone and speaker into a live voice session.
"""

import asyncio
import json
import logging
from typing import Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from gadget_scout.audio.websocket import WebSocketAudioSink, WebSocketAudioSource
from gadget_scout.config import get_settings
from gadget_scout.core.events import SessionEvent
from gadget_scout.core.exceptions import ConfigurationException, VoiceStateException

logger = logging.getLogger(__name__)
settings = get_settings()

router = APIRouter()


@router.websocket("/stream")
async def voice_stream(websocket: WebSocket, session_id: Optional[str] = None):
    """
    WebSocket endpoint for a live voice session on an existing chat session.

    Protocol:
    1. Client connects with ?session_id=... (from POST /api/v1/conversation/sessions)
    2. Server replies {"type": "voice_ready"} once streaming, or
       {"type": "voice_unavailable", "message": ...} and closes
    3. Client sends binary frames: float32 LE mono samples at 16 kHz
    4. Server sends scheduled audio ({"type": "audio", ...}), stop commands
       ({"type": "stop", ...}) and session events ({"type": "event", ...})
    5. Client sends {"type": "end"} (or disconnects) to leave voice mode

    Control messages:
        - {"type": "end"} - Leave voice mode
        - {"type": "ping"} - Keepalive
    """
    await websocket.accept()

    app = websocket.app
    session = None
    if session_id:
        session = await app.state.session_manager.get_session(session_id)
    if session is None:
        await websocket.send_json({"type": "error", "message": "Session not found"})
        await websocket.close(code=4404)
        return

    orchestrator = app.state.orchestrator
    connected = True

    async def forward_event(event: SessionEvent):
        if connected and event.session_id == session.session_id:
            await websocket.send_json({"type": "event", "event": event.to_dict()})

    unsubscribe = orchestrator.events.subscribe(forward_event)

    source = WebSocketAudioSource(settings.INPUT_SAMPLE_RATE)
    sink = WebSocketAudioSink(websocket.send_json, settings.OUTPUT_SAMPLE_RATE)
    pipeline = None

    try:
        try:
            started = await orchestrator.enter_voice_mode(session, source, sink)
        except (ConfigurationException, VoiceStateException) as e:
            await websocket.send_json({"type": "voice_unavailable", "message": e.message})
            return

        if not started:
            await websocket.send_json({
                "type": "voice_unavailable",
                "message": "Voice mode could not be started"
            })
            return

        pipeline = session.voice
        if pipeline is None:
            return
        await websocket.send_json({"type": "voice_ready", "session_id": session.session_id})

        # The pipeline can end on its own (channel failure); stop serving the socket when it does
        pipeline_closed = asyncio.ensure_future(pipeline.wait_closed())
        try:
            while session.voice is pipeline:
                receiving = asyncio.ensure_future(websocket.receive())
                await asyncio.wait({receiving, pipeline_closed}, return_when=asyncio.FIRST_COMPLETED)
                if not receiving.done():
                    receiving.cancel()
                    logger.info(f"Voice pipeline ended for {session.session_id}, closing socket")
                    break

                message = receiving.result()
                if message["type"] == "websocket.disconnect":
                    raise WebSocketDisconnect()

                session.touch()

                if message.get("bytes"):
                    source.feed(message["bytes"])
                    continue

                if message.get("text"):
                    try:
                        data = json.loads(message["text"])
                    except json.JSONDecodeError:
                        logger.warning(f"Invalid JSON message: {message['text']}")
                        continue

                    msg_type = data.get("type")
                    if msg_type == "end":
                        break
                    elif msg_type == "ping":
                        await websocket.send_json({"type": "pong"})
        finally:
            pipeline_closed.cancel()

    except WebSocketDisconnect:
        logger.info(f"Voice WebSocket disconnected: {session.session_id}")
        connected = False
    except Exception as e:
        logger.exception(f"Voice WebSocket error: {e}")
    finally:
        if pipeline is not None and session.voice is pipeline:
            await orchestrator.exit_voice_mode(session)
        unsubscribe()
        if connected:
            connected = False
            try:
                await websocket.close()
            except RuntimeError:
                pass
