"""
Socket.IO endpoint for devices and web clients.
"""

import inspect
from typing import Any, List, Optional

import socketio

from errors import AuthError
from services.broadcaster import EventRouter


class SocketEmitter:
  """Adapts an AsyncServer to the emitter interface the router expects."""

  def __init__(self, sio: socketio.AsyncServer):
    self.sio = sio

  async def emit(self, event: str, data: Any, room: Optional[str] = None, to: Optional[str] = None) -> None:
    await self.sio.emit(event, data, to=to or room)

  async def enter_room(self, sid: str, room: str) -> None:
    result = self.sio.enter_room(sid, room)
    if inspect.isawaitable(result):
      await result


def create_server(cors_origins: List[str]) -> socketio.AsyncServer:
  allowed: Any = "*" if cors_origins == ["*"] else cors_origins
  return socketio.AsyncServer(async_mode="asgi", cors_allowed_origins=allowed)


def register_handlers(sio: socketio.AsyncServer, relay: EventRouter) -> None:
  """Wire Socket.IO events to the router."""

  @sio.event
  async def connect(sid, environ, auth=None):
    try:
      await relay.connect(sid, auth)
    except AuthError as exc:
      print(f"[auth] rejected sid={sid} reason={exc}")
      raise socketio.exceptions.ConnectionRefusedError("Authentication error")
    # Entry actions run after the handshake is acknowledged.
    sio.start_background_task(relay.established, sid)

  @sio.event
  async def disconnect(sid, *args):
    await relay.disconnect(sid)

  @sio.on("report")
  async def report(sid, data=None):
    await relay.report(sid, data)

  @sio.on("door_status")
  async def door_status(sid, data=None):
    await relay.door_status(sid, data)

  @sio.on("command")
  async def command(sid, data=None):
    await relay.command(sid, data)
