"""
Schemas for inbound socket events.

Each parser takes the raw event argument and returns a tagged dataclass or
raises ProtocolError. Missing optional text fields fall back to defaults;
fields that are present with the wrong type are rejected.
"""

from dataclasses import dataclass
from typing import Any, Mapping, Optional

from errors import ProtocolError
from state import DOOR_STATES, DOOR_UNKNOWN

DEFAULT_REPORT_KIND = "info"


@dataclass(frozen=True)
class ReportEvent:
  kind: str
  message: str
  image: Optional[str] = None


@dataclass(frozen=True)
class DoorStatusEvent:
  state: str


@dataclass(frozen=True)
class CommandEvent:
  cmd: str


def _optional_str(data: Mapping[str, Any], key: str, default: Optional[str]) -> Optional[str]:
  value = data.get(key)
  if value is None:
    return default
  if not isinstance(value, str):
    raise ProtocolError(f"{key} must be a string")
  return value


def parse_report(data: Any) -> ReportEvent:
  if not isinstance(data, Mapping):
    raise ProtocolError("report payload must be an object")
  kind = _optional_str(data, "type", DEFAULT_REPORT_KIND) or DEFAULT_REPORT_KIND
  message = _optional_str(data, "msg", "") or ""
  image = _optional_str(data, "image", None) or None
  return ReportEvent(kind=kind.strip() or DEFAULT_REPORT_KIND, message=message, image=image)


def normalize_door_state(value: str) -> str:
  state = value.strip().upper()
  if state in DOOR_STATES:
    return state
  return DOOR_UNKNOWN


def parse_door_status(data: Any) -> DoorStatusEvent:
  # Older firmware emits the bare state string.
  if isinstance(data, str):
    return DoorStatusEvent(state=normalize_door_state(data))
  if not isinstance(data, Mapping):
    raise ProtocolError("door_status payload must be a string or object")
  state = data.get("state")
  if not isinstance(state, str):
    raise ProtocolError("door_status.state must be a string")
  return DoorStatusEvent(state=normalize_door_state(state))


def parse_command(data: Any) -> CommandEvent:
  if not isinstance(data, Mapping):
    raise ProtocolError("command payload must be an object")
  cmd = data.get("cmd")
  if not isinstance(cmd, str) or not cmd.strip():
    raise ProtocolError("command.cmd must be a non-empty string")
  return CommandEvent(cmd=cmd)
