"""
Bounded log journal and history replay.
"""

import asyncio
import threading
from dataclasses import replace
from typing import Any, Dict, List, Optional

import config
from errors import StorageError
from helpers import log_payload
from state import ImageRef, LogEntry, StoredImage


class LogJournal:
  """Newest-first, capacity-bounded sequence of log entries."""

  def __init__(self, capacity: int = config.LOG_CAPACITY) -> None:
    if capacity <= 0:
      raise ValueError("capacity must be positive")
    self.capacity = capacity
    self._entries: List[LogEntry] = []
    self._lock = threading.Lock()

  def __len__(self) -> int:
    with self._lock:
      return len(self._entries)

  def append(self, entry: LogEntry) -> List[LogEntry]:
    """Prepend ``entry`` and return whatever fell off the tail."""
    with self._lock:
      self._entries.insert(0, entry)
      evicted = self._entries[self.capacity:]
      del self._entries[self.capacity:]
    return evicted

  def snapshot(self) -> List[LogEntry]:
    with self._lock:
      return [replace(entry) for entry in self._entries]

  def newest_id(self) -> int:
    """Id of the newest entry, or 0 when the journal is empty."""
    with self._lock:
      return self._entries[0].id if self._entries else 0

  def get(self, entry_id: int) -> Optional[LogEntry]:
    with self._lock:
      for entry in self._entries:
        if entry.id == entry_id:
          return replace(entry)
    return None

  def rewrite_by_id(self, entry_id: int, image: ImageRef) -> bool:
    """Swap the image reference of a still-present entry.

    Returns False when the entry was already evicted; nothing is re-inserted.
    """
    with self._lock:
      for entry in self._entries:
        if entry.id == entry_id:
          entry.image = image
          return True
    return False


async def _presigned_url(storage: Any, key: str, ttl: int) -> Optional[str]:
  if storage is None:
    return None
  try:
    return await asyncio.to_thread(storage.presign, key, ttl)
  except StorageError as exc:
    print(f"[history] presign failed key={key}: {exc}")
    return None


async def build_history(
  journal: LogJournal,
  storage: Any,
  ttl: int = config.PRESIGN_TTL_SECONDS,
  until_id: Optional[int] = None,
) -> List[Dict[str, Any]]:
  """Return replay payloads, newest first, with fresh links for stored images.

  Entries newer than ``until_id`` are skipped.
  """
  payloads: List[Dict[str, Any]] = []
  for entry in journal.snapshot():
    if until_id is not None and entry.id > until_id:
      continue
    if isinstance(entry.image, StoredImage):
      url = await _presigned_url(storage, entry.image.object_key, ttl)
      payloads.append(log_payload(entry, img_url=url))
    else:
      payloads.append(log_payload(entry))
  return payloads
