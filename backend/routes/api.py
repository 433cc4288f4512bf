"""
HTTP API routes: the out-of-band command trigger.
"""

import json

from fastapi import APIRouter, HTTPException, Request

from auth import require_api_token
from errors import DeviceOfflineError
from helpers import safe_preview

router = APIRouter()


@router.post("/api/command")
async def api_command(request: Request):
  """Forward a command to the device and journal it as a system entry."""
  require_api_token(request)

  try:
    body = await request.json()
  except (json.JSONDecodeError, UnicodeDecodeError):
    raise HTTPException(status_code=400, detail="invalid_json")
  cmd = body.get("cmd") if isinstance(body, dict) else None
  if not isinstance(cmd, str) or not cmd.strip():
    raise HTTPException(status_code=400, detail="missing_cmd")

  relay = request.app.state.relay
  try:
    await relay.issue_command(cmd, source="api")
  except DeviceOfflineError:
    raise HTTPException(status_code=503, detail="device_offline")

  print(f"[api] external command forwarded cmd={safe_preview(cmd)}")
  return {"success": True}


@router.get("/healthz")
def healthz():
  """Liveness probe."""
  return {"ok": True}
