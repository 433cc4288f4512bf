"""Tests for the Socket.IO handler wiring and emitter adapter."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest
import socketio

from conftest import FakeEmitter, device_auth, web_auth
from routes.websocket import SocketEmitter, create_server, register_handlers
from services.broadcaster import DEVICE_ROOM, WEB_ROOM, EventRouter


class RecordingServer:
  """Stands in for AsyncServer where only emit/enter_room matter."""

  def __init__(self, async_rooms: bool = False) -> None:
    self.async_rooms = async_rooms
    self.emits: list[tuple[str, Any, Any]] = []
    self.rooms: list[tuple[str, str]] = []

  async def emit(self, event: str, data: Any, to: Any = None) -> None:
    self.emits.append((event, data, to))

  def enter_room(self, sid: str, room: str):
    self.rooms.append((sid, room))
    if self.async_rooms:
      return asyncio.sleep(0)
    return None


@pytest.fixture
def server(relay: EventRouter, monkeypatch: pytest.MonkeyPatch):
  sio = create_server(["*"])
  register_handlers(sio, relay)
  scheduled: list[tuple[Any, tuple]] = []

  def start_background_task(target, *args, **kwargs):
    scheduled.append((target, args))

  monkeypatch.setattr(sio, "start_background_task", start_background_task)
  return sio, scheduled


def _handler(sio: socketio.AsyncServer, event: str):
  return sio.handlers["/"][event]


def test_wrong_token_refuses_handshake(server, relay: EventRouter, emitter: FakeEmitter) -> None:
  sio, scheduled = server

  with pytest.raises(socketio.exceptions.ConnectionRefusedError):
    asyncio.run(_handler(sio, "connect")("intruder", {}, {"type": "device", "token": "wrong"}))

  assert relay.roles.role_of("intruder") is None
  assert "intruder" not in emitter.rooms[DEVICE_ROOM]
  assert scheduled == []
  assert emitter.sent == []


def test_missing_auth_refuses_handshake(server, relay: EventRouter) -> None:
  sio, scheduled = server

  with pytest.raises(socketio.exceptions.ConnectionRefusedError):
    asyncio.run(_handler(sio, "connect")("anon", {}, None))

  assert relay.roles.counts() == {"device": 0, "web": 0}
  assert scheduled == []


def test_accepted_handshake_defers_entry_actions(server, relay: EventRouter, emitter: FakeEmitter) -> None:
  sio, scheduled = server

  asyncio.run(_handler(sio, "connect")("web-1", {}, web_auth()))

  assert relay.roles.role_of("web-1") == "web"
  assert "web-1" in emitter.rooms[WEB_ROOM]
  # Nothing is sent until the handshake has been acknowledged.
  assert emitter.sent == []
  assert scheduled == [(relay.established, ("web-1",))]

  target, args = scheduled[0]
  asyncio.run(target(*args))

  assert emitter.received("web-1", "status") == [{"connected": False, "camera": False, "door": "UNKNOWN"}]


def test_events_and_disconnect_reach_router(server, relay: EventRouter, emitter: FakeEmitter) -> None:
  sio, scheduled = server

  async def scenario() -> None:
    await _handler(sio, "connect")("dev-1", {}, device_auth())
    await _handler(sio, "connect")("web-1", {}, web_auth())
    for target, args in scheduled:
      await target(*args)
    emitter.sent.clear()
    await _handler(sio, "door_status")("dev-1", {"state": "OPEN"})
    await _handler(sio, "report")("dev-1", {"type": "info", "msg": "hello"})
    await _handler(sio, "command")("web-1", {"cmd": "OPEN"})
    await _handler(sio, "disconnect")("dev-1", "client disconnect")

  asyncio.run(scenario())

  assert emitter.received("dev-1", "command") == [{"cmd": "OPEN"}]
  assert [log["msg"] for log in emitter.received("web-1", "log")] == ["hello"]
  assert emitter.received("web-1", "status")[-1] == {"connected": False, "camera": False, "door": "OPEN"}
  assert relay.roles.role_of("dev-1") is None


def test_emitter_maps_room_and_sid_targets() -> None:
  fake = RecordingServer()
  adapter = SocketEmitter(fake)

  async def scenario() -> None:
    await adapter.emit("status", {"door": "OPEN"}, room=WEB_ROOM)
    await adapter.emit("log", {"id": 1}, to="web-1")
    await adapter.emit("command", {"cmd": "OPEN"}, room=DEVICE_ROOM, to="dev-1")

  asyncio.run(scenario())

  assert fake.emits == [
    ("status", {"door": "OPEN"}, WEB_ROOM),
    ("log", {"id": 1}, "web-1"),
    ("command", {"cmd": "OPEN"}, "dev-1"),
  ]


@pytest.mark.parametrize("async_rooms", [False, True])
def test_emitter_enters_room_with_sync_or_async_server(async_rooms: bool) -> None:
  fake = RecordingServer(async_rooms=async_rooms)

  asyncio.run(SocketEmitter(fake).enter_room("dev-1", DEVICE_ROOM))

  assert fake.rooms == [("dev-1", DEVICE_ROOM)]
