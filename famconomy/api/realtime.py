"""
Realtime channel (Socket.IO)

One ``socketio.AsyncServer`` is created by the app factory and handed to
request handlers through ``RealtimeGateway`` on ``app.state``. Every
authenticated socket joins a room named after its user id; family chat uses
``family:{id}`` rooms joined on demand.
"""

import logging
from http.cookies import SimpleCookie
from typing import Any, Callable, Dict, Optional
from uuid import UUID

import socketio
from fastapi import Request
from socketio.exceptions import ConnectionRefusedError as SocketConnectionRefused
from sqlalchemy.ext.asyncio import AsyncSession

from famconomy.api.config import Settings
from famconomy.api.dependencies import authenticate_token, verify_family_membership

logger = logging.getLogger(__name__)


def family_room(family_id: int) -> str:
    return f"family:{family_id}"


class RealtimeGateway:
    """Thin emit facade over the Socket.IO server."""

    def __init__(self, sio: socketio.AsyncServer):
        self.sio = sio

    async def notify_user(self, user_id: UUID, event: str, payload: Dict[str, Any]) -> None:
        await self.sio.emit(event, payload, room=str(user_id))

    async def emit_to_family(
        self,
        family_id: int,
        event: str,
        payload: Dict[str, Any],
        skip_sid: Optional[str] = None,
    ) -> None:
        await self.sio.emit(event, payload, room=family_room(family_id), skip_sid=skip_sid)


def _token_from_handshake(environ: Dict[str, Any], auth: Any, cookie_name: str) -> Optional[str]:
    if isinstance(auth, dict) and auth.get("token"):
        token = str(auth["token"])
        return token[7:] if token.lower().startswith("bearer ") else token

    raw_cookie = environ.get("HTTP_COOKIE")
    if raw_cookie:
        cookie = SimpleCookie()
        cookie.load(raw_cookie)
        if cookie_name in cookie:
            return cookie[cookie_name].value
    return None


def _family_id(data: Any) -> Optional[int]:
    raw = data.get("familyId") if isinstance(data, dict) else data
    try:
        value = int(raw)
    except (TypeError, ValueError):
        return None
    return value if value > 0 else None


def _event_payload(data: Any, family_id: int, user_id: str) -> Dict[str, Any]:
    payload = dict(data) if isinstance(data, dict) else {}
    payload.update({"familyId": family_id, "userId": user_id})
    return payload


def create_socket_server(
    settings: Settings,
    session_factory: Callable[[], AsyncSession],
) -> socketio.AsyncServer:
    """
    Build the Socket.IO server and register its event handlers.

    Args:
        settings: Application settings (CORS origins, cookie name)
        session_factory: Factory for database sessions used by the handlers

    Returns:
        socketio.AsyncServer: Server ready to wrap in ``socketio.ASGIApp``
    """
    sio = socketio.AsyncServer(
        async_mode="asgi",
        cors_allowed_origins=settings.CORS_ORIGINS,
        logger=False,
        engineio_logger=False,
    )

    @sio.event
    async def connect(sid, environ, auth=None):
        token = _token_from_handshake(environ, auth, settings.AUTH_COOKIE_NAME)
        if not token:
            raise SocketConnectionRefused("Authentication required")

        async with session_factory() as session:
            user = await authenticate_token(session, token)
        if user is None:
            raise SocketConnectionRefused("Invalid or expired token")

        await sio.save_session(sid, {"user_id": str(user.id)})
        await sio.enter_room(sid, str(user.id))
        logger.info(f"Socket {sid} connected for user {user.id}")

    @sio.event
    async def disconnect(sid, *args):
        logger.debug(f"Socket {sid} disconnected")

    async def _member_family(sid: str, data: Any) -> Optional[int]:
        family_id = _family_id(data)
        if family_id is None:
            return None
        socket_session = await sio.get_session(sid)
        async with session_factory() as session:
            membership = await verify_family_membership(
                session, UUID(socket_session["user_id"]), family_id
            )
        if membership is None:
            logger.warning(
                "Socket family join denied",
                extra={"user_id": socket_session["user_id"], "family_id": family_id},
            )
            return None
        return family_id

    @sio.on("chat:join")
    async def chat_join(sid, data):
        family_id = await _member_family(sid, data)
        if family_id is None:
            await sio.emit("chat:error", {"error": "Access denied."}, to=sid)
            return
        await sio.enter_room(sid, family_room(family_id))

    @sio.on("chat:leave")
    async def chat_leave(sid, data):
        family_id = _family_id(data)
        if family_id is not None:
            await sio.leave_room(sid, family_room(family_id))

    @sio.on("user:typing")
    async def user_typing(sid, data):
        family_id = _family_id(data)
        if family_id is None or family_room(family_id) not in sio.rooms(sid):
            return
        socket_session = await sio.get_session(sid)
        await sio.emit(
            "user:typing",
            _event_payload(data, family_id, socket_session["user_id"]),
            room=family_room(family_id),
            skip_sid=sid,
        )

    @sio.on("message:read")
    async def message_read(sid, data):
        family_id = _family_id(data)
        if family_id is None or family_room(family_id) not in sio.rooms(sid):
            return
        socket_session = await sio.get_session(sid)
        await sio.emit(
            "message:read",
            _event_payload(data, family_id, socket_session["user_id"]),
            room=family_room(family_id),
            skip_sid=sid,
        )

    return sio


def get_realtime(request: Request) -> Optional[RealtimeGateway]:
    """Dependency: the app's realtime gateway (None when realtime is disabled)."""
    return getattr(request.app.state, "realtime", None)
