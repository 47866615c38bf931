"""
Host bridge: WebSocket link between a running game and its narration session.

URL: /ws/narration/{session_id}

Connection flow:
  1. Accept connection → start (or replace) the narration session for the id
  2. Send private "connected" message
  3. Message loop (_dispatch_message)
  4. On disconnect: stop the session unless a newer connection took it over

Host → server message types ({ type, data: { ... } }):
  ping      keep-alive heartbeat → responds with "pong"
  snapshot  latest game snapshot; answers every snapshot query until replaced
  event     domain event payload (state_transition, combat_effect, ...)
  input     user navigation command, data: { command }
  modal     input-modal focus, data: { active }
  mode      session mode change, data: { mode, entered, enemyName }
  refresh   host asks for a refresh + announcement

Server → host:
  speak     { text, interrupt } for the screen reader
  action    { action, cardId?, toStash? } for the host to perform
"""
import asyncio
import json
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from models.events import SessionMode
from models.game import GameSnapshot
from narration.session import NarrationSession, session_manager
from services.speech import QueueSpeechBackend

logger = logging.getLogger(__name__)

router = APIRouter()


class HostConnection:
    """Per-connection state: the outbound queue and the last pushed snapshot."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        self.backend = QueueSpeechBackend()
        self.snapshot: Optional[GameSnapshot] = None

    @property
    def outbox(self) -> asyncio.Queue:
        return self.backend.queue

    def query_snapshot(self) -> Optional[GameSnapshot]:
        return self.snapshot


class HostActions:
    """
    GameActions that relay each request to the host.
    The relay always succeeds; the host reports the outcome as a
    user_action_completed event.
    """

    def __init__(self, connection: HostConnection):
        self._connection = connection

    def _relay(self, action: str, **params: Any) -> bool:
        self._connection.outbox.put_nowait({"type": "action", "action": action, **params})
        logger.debug("[%s] Action relayed: %s", self._connection.session_id, action)
        return True

    def buy(self, card_id: str) -> bool:
        return self._relay("buy", cardId=card_id)

    def sell(self, card_id: str) -> bool:
        return self._relay("sell", cardId=card_id)

    def move(self, card_id: str, to_stash: bool) -> bool:
        return self._relay("move", cardId=card_id, toStash=to_stash)

    def select(self, card_id: str) -> bool:
        return self._relay("select", cardId=card_id)

    def exit_state(self) -> bool:
        return self._relay("exit_state")

    def reroll(self) -> bool:
        return self._relay("reroll")

    def replay_continue(self) -> bool:
        return self._relay("replay_continue")

    def replay_again(self) -> bool:
        return self._relay("replay_again")

    def replay_recap(self) -> bool:
        return self._relay("replay_recap")


# ── WebSocket endpoint ─────────────────────────────────────────────────────────

@router.websocket("/ws/narration/{session_id}")
async def narration_endpoint(ws: WebSocket, session_id: str):
    await ws.accept()

    connection = HostConnection(session_id)
    session = session_manager.start_session(
        session_id,
        query_snapshot=connection.query_snapshot,
        backend=connection.backend,
        actions=HostActions(connection),
    )
    sender = asyncio.create_task(_sender(ws, connection), name=f"bridge-sender-{session_id}")
    await ws.send_json({"type": "connected", "sessionId": session_id})

    try:
        while True:
            raw = await ws.receive_text()
            if not session.alive:
                # A newer connection replaced this session
                await ws.close(code=4409, reason="Session replaced")
                break
            try:
                data = json.loads(raw)
            except json.JSONDecodeError:
                await ws.send_json({
                    "type": "error",
                    "message": "Invalid JSON",
                    "code": "PARSE_ERROR",
                })
                continue

            msg_type = data.get("type", "") if isinstance(data, dict) else ""
            inner_data = data.get("data") if isinstance(data, dict) and isinstance(data.get("data"), dict) else {}
            await _handle_message(ws, connection, session, msg_type, inner_data)

    except WebSocketDisconnect:
        logger.info("[%s] Host disconnected", session_id)
    finally:
        sender.cancel()
        await asyncio.gather(sender, return_exceptions=True)
        if session_manager.get(session_id) is session:
            session_manager.stop_session(session_id)


async def _sender(ws: WebSocket, connection: HostConnection) -> None:
    """Drain speech and action messages to the host in order."""
    queue = connection.outbox
    while True:
        message = await queue.get()
        try:
            await ws.send_json(message)
        except Exception as exc:
            logger.warning("[%s] Bridge send error: %s", connection.session_id, exc)
        finally:
            queue.task_done()


# ── Message dispatcher ─────────────────────────────────────────────────────────

async def _handle_message(
    ws: WebSocket,
    connection: HostConnection,
    session: NarrationSession,
    msg_type: str,
    data: Dict,
) -> None:
    try:
        await _dispatch_message(ws, connection, session, msg_type, data)
    except WebSocketDisconnect:
        raise
    except Exception:
        logger.exception("[%s] Unhandled error in _handle_message (type=%s)", session.session_id, msg_type)
        try:
            await ws.send_json({"type": "error", "message": "Internal server error", "code": "SERVER_ERROR"})
        except Exception:
            logger.debug("[%s] Could not report error to host", session.session_id)


async def _dispatch_message(
    ws: WebSocket,
    connection: HostConnection,
    session: NarrationSession,
    msg_type: str,
    data: Dict,
) -> None:
    if msg_type == "ping":
        await ws.send_json({"type": "pong"})

    elif msg_type == "snapshot":
        try:
            connection.snapshot = GameSnapshot.model_validate(data)
        except ValidationError as exc:
            await ws.send_json({
                "type": "error",
                "message": f"Invalid snapshot: {exc.error_count()} errors",
                "code": "INVALID_SNAPSHOT",
            })

    elif msg_type == "event":
        # Unknown events are ignored, not reported
        session.ingest_payload(data)

    elif msg_type == "input":
        session.handle_input(data.get("command", ""))

    elif msg_type == "modal":
        session.set_modal_focus(bool(data.get("active", False)))

    elif msg_type == "mode":
        await _on_mode(ws, session, data)

    elif msg_type == "refresh":
        session.on_refresh_requested()

    else:
        await ws.send_json({
            "type": "error",
            "message": f"Unknown message type: '{msg_type}'",
            "code": "UNKNOWN_TYPE",
        })


async def _on_mode(ws: WebSocket, session: NarrationSession, data: Dict) -> None:
    try:
        mode = SessionMode(data.get("mode"))
    except ValueError:
        await ws.send_json({
            "type": "error",
            "message": f"Unknown mode: '{data.get('mode')}'",
            "code": "INVALID_MODE",
        })
        return
    session.on_mode_changed(mode, bool(data.get("entered", True)), data.get("enemyName"))
