"""
Authentication helpers for socket handshakes and API routes.
"""

import hmac
from typing import Any, Mapping, Optional

from fastapi import HTTPException, Request

import config
from errors import AuthError
from state import ROLE_DEVICE, ROLE_WEB


def _tokens_match(given: Optional[str], expected: str) -> bool:
  if not given or not expected:
    return False
  return hmac.compare_digest(given.encode("utf-8"), expected.encode("utf-8"))


def extract_token(headers: Mapping[str, str]) -> Optional[str]:
  """Extract bearer token from request headers."""
  auth = headers.get("authorization")
  if auth:
    parts = auth.strip().split()
    if len(parts) == 2 and parts[0].lower() == "bearer":
      return parts[1]
    return auth.strip()
  return headers.get("x-access-token") or headers.get("x-token")


def authenticate(
  auth: Any,
  device_token: Optional[str] = None,
  user_token: Optional[str] = None,
) -> str:
  """Classify a handshake as device or web, raising AuthError otherwise."""
  device_token = config.DEVICE_TOKEN if device_token is None else device_token
  user_token = config.USER_TOKEN if user_token is None else user_token

  if not isinstance(auth, Mapping):
    raise AuthError("missing_auth")
  token = auth.get("token")
  client_type = auth.get("type")
  if not isinstance(token, str) or not isinstance(client_type, str):
    raise AuthError("missing_fields")

  if client_type == ROLE_DEVICE and _tokens_match(token, device_token):
    return ROLE_DEVICE
  if client_type == ROLE_WEB and _tokens_match(token, user_token):
    return ROLE_WEB
  if client_type not in (ROLE_DEVICE, ROLE_WEB):
    raise AuthError("unknown_type")
  raise AuthError("bad_token")


def require_api_token(request: Request) -> None:
  """Raise HTTPException if the API token is missing or invalid."""
  token = extract_token(request.headers)
  if not token:
    token = request.query_params.get("token")
  if not _tokens_match(token, config.API_TOKEN):
    raise HTTPException(status_code=401, detail="unauthorized")
