"""
Environment-driven configuration for the relay.
"""

import os
from typing import List


def _env_str(name: str, default: str = "") -> str:
  value = os.getenv(name)
  if value is None:
    return default
  return value.strip()


def _env_int(name: str, default: int) -> int:
  raw = os.getenv(name)
  if raw is None or not raw.strip():
    return default
  try:
    return int(raw.strip())
  except ValueError:
    return default


def _env_list(name: str, default: str) -> List[str]:
  raw = _env_str(name, default)
  return [part.strip() for part in raw.split(",") if part.strip()]


PORT = _env_int("PORT", 3000)

# Shared secrets
DEVICE_TOKEN = _env_str("DEVICE_TOKEN", "default_device_token")
USER_TOKEN = _env_str("USER_TOKEN", "default_user_token")
API_TOKEN = _env_str("API_TOKEN", "external_secret_999")

# Object storage (Cloudflare R2, S3 compatible)
R2_ACCOUNT_ID = _env_str("R2_ACCOUNT_ID")
R2_ACCESS_KEY_ID = _env_str("R2_ACCESS_KEY_ID")
R2_SECRET_ACCESS_KEY = _env_str("R2_SECRET_ACCESS_KEY")
R2_BUCKET_NAME = _env_str("R2_BUCKET_NAME")
R2_ENDPOINT_URL = _env_str("R2_ENDPOINT_URL") or (
  f"https://{R2_ACCOUNT_ID}.r2.cloudflarestorage.com" if R2_ACCOUNT_ID else ""
)
STORAGE_ENABLED = bool(
  R2_BUCKET_NAME and R2_ENDPOINT_URL and R2_ACCESS_KEY_ID and R2_SECRET_ACCESS_KEY
)
STORAGE_TIMEOUT_SECONDS = _env_int("STORAGE_TIMEOUT_SECONDS", 10)
IMAGE_CONTENT_TYPE = _env_str("IMAGE_CONTENT_TYPE", "image/jpeg")
PRESIGN_TTL_SECONDS = max(1, _env_int("PRESIGN_TTL_SECONDS", 3600))

# Journal / offload
LOG_CAPACITY = max(1, _env_int("LOG_CAPACITY", 50))
OFFLOAD_WORKERS = max(1, _env_int("OFFLOAD_WORKERS", 2))
OFFLOAD_QUEUE_MAX = max(1, _env_int("OFFLOAD_QUEUE_MAX", 100))

CORS_ORIGINS = _env_list("CORS_ORIGINS", "*")
