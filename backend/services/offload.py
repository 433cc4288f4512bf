"""
Image offload service.

Moves inline base64 images out of the journal into object storage. Jobs are
queued without blocking the reporter and drained by a small pool of worker
tasks; each job ends in at most one journal rewrite.
"""

import asyncio
import base64
import binascii
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import config
from errors import DecodeError, StorageError
from helpers import strip_data_uri
from history import LogJournal
from state import StoredImage


@dataclass(frozen=True)
class OffloadJob:
  entry_id: int
  image: str


def decode_image(image: str) -> bytes:
  """Decode a base64 or data URI payload into raw bytes."""
  # Line-wrapped encoders insert CR/LF every 76 characters.
  body = "".join(strip_data_uri(image.strip()).split())
  try:
    data = base64.b64decode(body, validate=True)
  except (binascii.Error, ValueError) as exc:
    raise DecodeError(f"invalid base64 image: {exc}") from exc
  if not data:
    raise DecodeError("empty image payload")
  return data


class ImageOffloader:
  """Bounded worker pool that uploads images and rewrites journal entries."""

  def __init__(
    self,
    journal: LogJournal,
    storage: Any,
    workers: int = config.OFFLOAD_WORKERS,
    queue_max: int = config.OFFLOAD_QUEUE_MAX,
  ):
    self.journal = journal
    self.storage = storage
    self.workers = max(1, workers)
    self.queue_max = max(1, queue_max)
    self._queue: Optional[asyncio.Queue] = None
    self._tasks: List[asyncio.Task] = []
    self.stats: Dict[str, int] = {
      "submitted": 0,
      "stored": 0,
      "failed": 0,
      "dropped": 0,
      "evicted": 0,
    }

  @property
  def enabled(self) -> bool:
    return self.storage is not None

  @property
  def running(self) -> bool:
    return bool(self._tasks)

  def start(self) -> None:
    if not self.enabled or self._tasks:
      return
    self._queue = asyncio.Queue(maxsize=self.queue_max)
    self._tasks = [asyncio.create_task(self._worker(i)) for i in range(self.workers)]
    print(f"[offload] started workers={self.workers} queue_max={self.queue_max}")

  async def stop(self) -> None:
    tasks, self._tasks = self._tasks, []
    for task in tasks:
      task.cancel()
    if tasks:
      await asyncio.gather(*tasks, return_exceptions=True)
    self._queue = None

  def submit(self, entry_id: int, image: str) -> bool:
    """Queue an image for upload; never blocks and never raises."""
    if not self.enabled or self._queue is None:
      return False
    try:
      self._queue.put_nowait(OffloadJob(entry_id=entry_id, image=image))
    except asyncio.QueueFull:
      self.stats["dropped"] += 1
      print(f"[offload] queue full, entry {entry_id} stays inline")
      return False
    self.stats["submitted"] += 1
    return True

  async def process(self, job: OffloadJob) -> bool:
    """Run one job to completion; failures leave the entry inline."""
    try:
      data = decode_image(job.image)
    except DecodeError as exc:
      self.stats["failed"] += 1
      print(f"[offload] entry {job.entry_id} not offloaded: {exc}")
      return False

    # Upload happens outside any journal lock.
    try:
      key = await asyncio.to_thread(self.storage.put, data)
    except StorageError as exc:
      self.stats["failed"] += 1
      print(f"[offload] entry {job.entry_id} not offloaded: {exc}")
      return False

    if not self.journal.rewrite_by_id(job.entry_id, StoredImage(key)):
      self.stats["evicted"] += 1
      print(f"[offload] entry {job.entry_id} evicted before rewrite key={key}")
      return False
    self.stats["stored"] += 1
    return True

  async def _worker(self, index: int) -> None:
    queue = self._queue
    while True:
      job = await queue.get()
      try:
        await self.process(job)
      except Exception as exc:
        self.stats["failed"] += 1
        print(f"[offload] worker={index} unexpected error entry={job.entry_id}: {exc}")
      finally:
        queue.task_done()

  async def drain(self) -> None:
    """Wait until every queued job has been processed."""
    if self._queue is not None:
      await self._queue.join()
