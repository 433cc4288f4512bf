"""
Shared helper functions for building wire payloads.
"""

import re
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from state import DeviceStatus, InlineImage, LogEntry

_DATA_URI_PREFIX = "data:"


def iso_from_datetime(value: datetime) -> str:
  """Render a datetime as ISO 8601 UTC with millisecond precision."""
  return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def to_data_uri(image: str, content_type: str = "image/jpeg") -> str:
  """Wrap a bare base64 payload in a data URI; pass data URIs through."""
  if image.startswith(_DATA_URI_PREFIX):
    return image
  return f"data:{content_type};base64,{image}"


def strip_data_uri(image: str) -> str:
  """Return the base64 body of a payload, dropping any data URI header."""
  if image.startswith(_DATA_URI_PREFIX) and "," in image:
    return image.split(",", 1)[1]
  return image


def status_payload(status: DeviceStatus) -> Dict[str, Any]:
  return {
    "connected": status.connected,
    "camera": status.camera,
    "door": status.door,
  }


def log_payload(entry: LogEntry, img_url: Optional[str] = None) -> Dict[str, Any]:
  """Serialize an entry for the ``log`` event.

  Inline images are sent as-is; stored images need ``img_url`` from the presigner.
  """
  if img_url is None and isinstance(entry.image, InlineImage):
    img_url = entry.image.data_uri
  return {
    "id": entry.id,
    "time": iso_from_datetime(entry.timestamp),
    "type": entry.kind,
    "msg": entry.message,
    "imgUrl": img_url,
  }


_SAFE_PREVIEW_RE = re.compile(r"[^\x20-\x7e]")


def safe_preview(value: Any, limit: int = 80) -> str:
  """Printable, truncated preview of a value for log lines."""
  text = _SAFE_PREVIEW_RE.sub("?", str(value))
  if len(text) > limit:
    return text[:limit] + "..."
  return text
