"""
Object storage capability backed by an S3-compatible bucket (Cloudflare R2).

The relay only needs two operations: ``put(bytes) -> key`` and
``presign(key, ttl) -> url``. Both are blocking and are run from worker
threads by their callers.
"""

import secrets
import time
from typing import Any, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

import config
from errors import StorageError


def object_key_for_upload(prefix: str = "logs") -> str:
  """Return a fresh ``<prefix>/<epoch-ms>_<random>.jpg`` key."""
  return f"{prefix}/{int(time.time() * 1000)}_{secrets.token_hex(4)}.jpg"


class R2Storage:
  """Private-bucket storage: uploads return keys, never public URLs."""

  def __init__(
    self,
    bucket: str,
    client: Any,
    content_type: str = config.IMAGE_CONTENT_TYPE,
  ):
    self.bucket = bucket
    self.client = client
    self.content_type = content_type

  @classmethod
  def from_config(cls) -> Optional["R2Storage"]:
    """Build a client from environment settings, or None when not configured."""
    if not config.STORAGE_ENABLED:
      return None
    client = boto3.client(
      "s3",
      endpoint_url=config.R2_ENDPOINT_URL,
      aws_access_key_id=config.R2_ACCESS_KEY_ID,
      aws_secret_access_key=config.R2_SECRET_ACCESS_KEY,
      region_name="auto",
      config=Config(
        signature_version="s3v4",
        connect_timeout=config.STORAGE_TIMEOUT_SECONDS,
        read_timeout=config.STORAGE_TIMEOUT_SECONDS,
        retries={"max_attempts": 1, "mode": "standard"},
      ),
    )
    return cls(config.R2_BUCKET_NAME, client)

  def put(self, data: bytes) -> str:
    key = object_key_for_upload()
    try:
      self.client.put_object(
        Bucket=self.bucket,
        Key=key,
        Body=data,
        ContentType=self.content_type,
      )
    except (BotoCoreError, ClientError) as exc:
      raise StorageError(f"upload failed: {exc}") from exc
    return key

  def presign(self, key: str, ttl: int = config.PRESIGN_TTL_SECONDS) -> str:
    try:
      return self.client.generate_presigned_url(
        "get_object",
        Params={"Bucket": self.bucket, "Key": key},
        ExpiresIn=int(ttl),
      )
    except (BotoCoreError, ClientError) as exc:
      raise StorageError(f"presign failed: {exc}") from exc
