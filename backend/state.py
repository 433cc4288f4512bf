import threading
import time
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Callable, Dict, Optional, Union

ROLE_DEVICE = "device"
ROLE_WEB = "web"

DOOR_OPEN = "OPEN"
DOOR_CLOSED = "CLOSED"
DOOR_UNKNOWN = "UNKNOWN"
DOOR_STATES = (DOOR_OPEN, DOOR_CLOSED, DOOR_UNKNOWN)

PHASE_AUTHENTICATED = "authenticated"
PHASE_CLOSED = "closed"


@dataclass
class DeviceStatus:
  connected: bool = False
  camera: bool = False
  door: str = DOOR_UNKNOWN


@dataclass(frozen=True)
class InlineImage:
  data_uri: str


@dataclass(frozen=True)
class StoredImage:
  object_key: str


ImageRef = Union[None, InlineImage, StoredImage]


@dataclass
class LogEntry:
  id: int
  timestamp: datetime
  kind: str
  message: str
  image: ImageRef = None


@dataclass
class Connection:
  sid: str
  role: str
  phase: str = PHASE_AUTHENTICATED
  connected_at: float = field(default_factory=time.time)


_id_lock = threading.Lock()
_last_id = 0


def next_entry_id() -> int:
  """Return a nanosecond-clock id that is strictly greater than the last one."""
  global _last_id
  with _id_lock:
    candidate = time.time_ns()
    if candidate <= _last_id:
      candidate = _last_id + 1
    _last_id = candidate
    return candidate


def new_log_entry(kind: str, message: str, image: ImageRef = None) -> LogEntry:
  return LogEntry(
    id=next_entry_id(),
    timestamp=datetime.now(timezone.utc),
    kind=kind,
    message=message,
    image=image,
  )


class DeviceStatusStore:
  """The single authoritative device status record."""

  def __init__(self) -> None:
    self._status = DeviceStatus()
    self._lock = threading.Lock()

  def read(self) -> DeviceStatus:
    with self._lock:
      return replace(self._status)

  def update(self, mutator: Callable[[DeviceStatus], None]) -> DeviceStatus:
    """Apply ``mutator`` to a draft and publish it as one write.

    The caller broadcasts the returned snapshot.
    """
    with self._lock:
      draft = replace(self._status)
      mutator(draft)
      self._status = draft
      return replace(draft)


class RoleRegistry:
  """Maps live transport session ids to the role they authenticated as."""

  def __init__(self) -> None:
    self._connections: Dict[str, Connection] = {}
    self._lock = threading.Lock()

  def register(self, sid: str, role: str) -> Connection:
    conn = Connection(sid=sid, role=role)
    with self._lock:
      self._connections[sid] = conn
    return replace(conn)

  def evict(self, sid: str) -> Optional[Connection]:
    with self._lock:
      conn = self._connections.pop(sid, None)
    if conn is None:
      return None
    return replace(conn, phase=PHASE_CLOSED)

  def role_of(self, sid: str) -> Optional[str]:
    with self._lock:
      conn = self._connections.get(sid)
      return conn.role if conn else None

  def count(self, role: Optional[str] = None) -> int:
    with self._lock:
      if role is None:
        return len(self._connections)
      return sum(1 for conn in self._connections.values() if conn.role == role)

  def counts(self) -> Dict[str, int]:
    with self._lock:
      totals: Dict[str, int] = {ROLE_DEVICE: 0, ROLE_WEB: 0}
      for conn in self._connections.values():
        totals[conn.role] = totals.get(conn.role, 0) + 1
      return totals
