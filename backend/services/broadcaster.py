"""
Event router service.

Implements the per-connection state machine (connect, report, door status,
command, disconnect) and fans results out to the device and web rooms. The
router never touches the socket server directly; it talks to an emitter with
``emit(event, data, room=..., to=...)`` and ``enter_room(sid, room)`` so the
same logic runs against Socket.IO or an in-memory fake.
"""

from typing import Any, Dict, Optional

import config
from auth import authenticate
from errors import DeviceOfflineError, ProtocolError
from helpers import log_payload, safe_preview, status_payload, to_data_uri
from history import LogJournal, build_history
from protocol import parse_command, parse_door_status, parse_report
from services.offload import ImageOffloader
from state import (
  ROLE_DEVICE,
  ROLE_WEB,
  DeviceStatus,
  DeviceStatusStore,
  InlineImage,
  LogEntry,
  RoleRegistry,
  new_log_entry,
)

DEVICE_ROOM = "device_room"
WEB_ROOM = "web_room"

LOG_KIND_SYSTEM = "system"


class EventRouter:
  """Dispatches connection events between the device and web rooms."""

  def __init__(
    self,
    emitter: Any,
    status: DeviceStatusStore,
    journal: LogJournal,
    roles: RoleRegistry,
    offloader: ImageOffloader,
    storage: Any = None,
    device_token: Optional[str] = None,
    user_token: Optional[str] = None,
  ):
    self.emitter = emitter
    self.status = status
    self.journal = journal
    self.roles = roles
    self.offloader = offloader
    self.storage = storage
    self.device_token = device_token
    self.user_token = user_token
    # Newest journal id each web sid saw before joining the web room.
    self._replay_cutoff: Dict[str, int] = {}

  # ---------------------------------------------------------------------------
  # Connection lifecycle
  # ---------------------------------------------------------------------------
  async def connect(self, sid: str, auth: Any) -> str:
    """Authenticate and register ``sid``; raises AuthError on rejection."""
    role = authenticate(auth, self.device_token, self.user_token)
    self.roles.register(sid, role)
    if role == ROLE_DEVICE:
      await self.emitter.enter_room(sid, DEVICE_ROOM)
    else:
      # Entries appended after this point arrive live, not in the replay.
      self._replay_cutoff[sid] = self.journal.newest_id()
      await self.emitter.enter_room(sid, WEB_ROOM)
    print(f"[relay] connected role={role} sid={sid}")
    return role

  async def established(self, sid: str) -> None:
    """Run the entry actions of Authenticated(role) once the handshake is done."""
    role = self.roles.role_of(sid)
    if role == ROLE_DEVICE:
      snapshot = self.status.update(_mark_device_online)
      await self._broadcast_status(snapshot)
    elif role == ROLE_WEB:
      await self.replay(sid)

  async def replay(self, sid: str) -> None:
    """Send the status snapshot and full history to one web connection."""
    await self.emitter.emit("status", status_payload(self.status.read()), to=sid)
    history = await build_history(self.journal, self.storage, until_id=self._replay_cutoff.pop(sid, None))
    # Oldest first, so clients that prepend end up newest first.
    for payload in reversed(history):
      await self.emitter.emit("log", payload, to=sid)

  async def disconnect(self, sid: str) -> None:
    conn = self.roles.evict(sid)
    self._replay_cutoff.pop(sid, None)
    if conn is None:
      return
    print(f"[relay] disconnected role={conn.role} sid={sid}")
    if conn.role != ROLE_DEVICE:
      return
    # A reconnecting device may already hold a newer session.
    if self.roles.count(ROLE_DEVICE) > 0:
      return
    snapshot = self.status.update(_mark_device_offline)
    await self._broadcast_status(snapshot)

  # ---------------------------------------------------------------------------
  # Device events
  # ---------------------------------------------------------------------------
  async def report(self, sid: str, data: Any) -> Optional[LogEntry]:
    if not self._has_role(sid, ROLE_DEVICE, "report"):
      return None
    try:
      event = parse_report(data)
    except ProtocolError as exc:
      print(f"[relay] dropped report sid={sid}: {exc}")
      return None

    image = InlineImage(to_data_uri(event.image, config.IMAGE_CONTENT_TYPE)) if event.image else None
    entry = new_log_entry(event.kind, event.message, image)
    await self.append_and_broadcast(entry)
    if event.image:
      self.offloader.submit(entry.id, event.image)
    return entry

  async def door_status(self, sid: str, data: Any) -> Optional[DeviceStatus]:
    if not self._has_role(sid, ROLE_DEVICE, "door_status"):
      return None
    try:
      event = parse_door_status(data)
    except ProtocolError as exc:
      print(f"[relay] dropped door_status sid={sid}: {exc}")
      return None

    def _set_door(status: DeviceStatus) -> None:
      status.door = event.state

    snapshot = self.status.update(_set_door)
    await self._broadcast_status(snapshot)
    return snapshot

  # ---------------------------------------------------------------------------
  # Web events
  # ---------------------------------------------------------------------------
  async def command(self, sid: str, data: Any) -> Optional[str]:
    if not self._has_role(sid, ROLE_WEB, "command"):
      return None
    try:
      event = parse_command(data)
    except ProtocolError as exc:
      print(f"[relay] dropped command sid={sid}: {exc}")
      return None
    print(f"[relay] command received cmd={safe_preview(event.cmd)}")
    await self.forward_command(event.cmd)
    return event.cmd

  async def forward_command(self, cmd: str) -> None:
    await self.emitter.emit("command", {"cmd": cmd}, room=DEVICE_ROOM)

  async def issue_command(self, cmd: str, source: str = "api") -> LogEntry:
    """Forward a command from outside the socket layer and journal it.

    Raises DeviceOfflineError when no device is connected.
    """
    if not self.status.read().connected:
      raise DeviceOfflineError("device offline")
    await self.forward_command(cmd)
    entry = new_log_entry(LOG_KIND_SYSTEM, f"External {source} triggered command: {cmd}")
    await self.append_and_broadcast(entry)
    return entry

  # ---------------------------------------------------------------------------
  # Shared
  # ---------------------------------------------------------------------------
  async def append_and_broadcast(self, entry: LogEntry) -> None:
    payload = log_payload(entry)
    self.journal.append(entry)
    await self.emitter.emit("log", payload, room=WEB_ROOM)

  async def _broadcast_status(self, snapshot: DeviceStatus) -> None:
    await self.emitter.emit("status", status_payload(snapshot), room=WEB_ROOM)

  def _has_role(self, sid: str, role: str, event_name: str) -> bool:
    actual = self.roles.role_of(sid)
    if actual == role:
      return True
    print(f"[relay] ignored {event_name} from sid={sid} role={actual}")
    return False

  def stats(self) -> Dict[str, Any]:
    return {
      "status": status_payload(self.status.read()),
      "journal_size": len(self.journal),
      "journal_capacity": self.journal.capacity,
      "connections": self.roles.counts(),
      "offload": dict(self.offloader.stats),
      "offload_running": self.offloader.running,
      "storage_configured": self.storage is not None,
    }


def _mark_device_online(status: DeviceStatus) -> None:
  status.connected = True
  status.camera = True


def _mark_device_offline(status: DeviceStatus) -> None:
  status.connected = False
  status.camera = False
