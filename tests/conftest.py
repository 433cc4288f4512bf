from __future__ import annotations

import base64
from collections import defaultdict
from typing import Any

import pytest

from errors import StorageError
from history import LogJournal
from services.broadcaster import EventRouter
from services.offload import ImageOffloader
from state import DeviceStatusStore, RoleRegistry

DEVICE_TOKEN = "device-secret"
USER_TOKEN = "user-secret"

JPEG_BYTES = b"\xff\xd8\xff\xe0fake-jpeg-body"
JPEG_B64 = base64.b64encode(JPEG_BYTES).decode("ascii")


class FakeEmitter:
  """Records emits and room membership the way Socket.IO would deliver them."""

  def __init__(self) -> None:
    self.rooms: dict[str, set[str]] = defaultdict(set)
    self.sent: list[tuple[str, str, Any]] = []

  async def emit(self, event: str, data: Any, room: str | None = None, to: str | None = None) -> None:
    if to is not None:
      self.sent.append((to, event, data))
      return
    for sid in sorted(self.rooms.get(room, ())):
      self.sent.append((sid, event, data))

  async def enter_room(self, sid: str, room: str) -> None:
    self.rooms[room].add(sid)

  def received(self, sid: str, event: str | None = None) -> list[Any]:
    return [data for target, name, data in self.sent if target == sid and (event is None or name == event)]


class FakeStorage:
  def __init__(self, fail_put: bool = False, fail_presign: bool = False) -> None:
    self.fail_put = fail_put
    self.fail_presign = fail_presign
    self.objects: dict[str, bytes] = {}
    self.presigned: list[tuple[str, int]] = []

  def put(self, data: bytes) -> str:
    if self.fail_put:
      raise StorageError("bucket unavailable")
    key = f"logs/{len(self.objects)}.jpg"
    self.objects[key] = data
    return key

  def presign(self, key: str, ttl: int) -> str:
    if self.fail_presign:
      raise StorageError("signing failed")
    self.presigned.append((key, ttl))
    return f"https://bucket.example/{key}?expires={ttl}&n={len(self.presigned)}"


@pytest.fixture
def emitter() -> FakeEmitter:
  return FakeEmitter()


@pytest.fixture
def storage() -> FakeStorage:
  return FakeStorage()


@pytest.fixture
def journal() -> LogJournal:
  return LogJournal(50)


@pytest.fixture
def relay(emitter: FakeEmitter, storage: FakeStorage, journal: LogJournal) -> EventRouter:
  return EventRouter(
    emitter,
    status=DeviceStatusStore(),
    journal=journal,
    roles=RoleRegistry(),
    offloader=ImageOffloader(journal, storage, workers=1, queue_max=10),
    storage=storage,
    device_token=DEVICE_TOKEN,
    user_token=USER_TOKEN,
  )


def device_auth() -> dict[str, str]:
  return {"type": "device", "token": DEVICE_TOKEN}


def web_auth() -> dict[str, str]:
  return {"type": "web", "token": USER_TOKEN}
