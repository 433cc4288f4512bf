"""
Debug routes for troubleshooting a running relay.
"""

import time

from fastapi import APIRouter, Request

from auth import require_api_token

router = APIRouter()


@router.get("/debug/stats")
def get_stats(request: Request):
  """Return status, journal and offload counters."""
  require_api_token(request)
  payload = request.app.state.relay.stats()
  payload["server_time"] = time.time()
  return payload
