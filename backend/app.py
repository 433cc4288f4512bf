"""
SmartDoor Relay - FastAPI + Socket.IO application.

Run with ``uvicorn app:asgi_app`` from the backend directory, or ``smartdoor-relay``.
"""

from typing import Any, Optional

import socketio
import uvicorn
from fastapi import FastAPI

import config
from history import LogJournal
from routes.api import router as api_router
from routes.debug import router as debug_router
from routes.websocket import SocketEmitter, create_server, register_handlers
from services.broadcaster import EventRouter
from services.offload import ImageOffloader
from state import DeviceStatusStore, RoleRegistry
from storage import R2Storage


def create_app(
  storage: Any = None,
  emitter: Any = None,
  sio: Optional[socketio.AsyncServer] = None,
) -> FastAPI:
  """Build the app and its process-wide state.

  ``storage`` defaults to the configured R2 bucket (or none); ``emitter``
  defaults to the Socket.IO server.
  """
  app = FastAPI(title="SmartDoor Relay", version="1.0.0")
  app.include_router(api_router)
  app.include_router(debug_router)

  if storage is None:
    storage = R2Storage.from_config()
  if sio is None:
    sio = create_server(config.CORS_ORIGINS)
  if emitter is None:
    emitter = SocketEmitter(sio)

  journal = LogJournal(config.LOG_CAPACITY)
  offloader = ImageOffloader(journal, storage)
  relay = EventRouter(
    emitter,
    status=DeviceStatusStore(),
    journal=journal,
    roles=RoleRegistry(),
    offloader=offloader,
    storage=storage,
  )
  register_handlers(sio, relay)

  app.state.sio = sio
  app.state.relay = relay
  app.state.offloader = offloader

  @app.on_event("startup")
  async def startup():
    """Start background workers."""
    if storage is None:
      print("[startup] object storage not configured, images stay inline")
    offloader.start()

  @app.on_event("shutdown")
  async def shutdown():
    """Stop background workers."""
    await offloader.stop()

  return app


app = create_app()
asgi_app = socketio.ASGIApp(app.state.sio, other_asgi_app=app)


def main() -> None:
  uvicorn.run(asgi_app, host="0.0.0.0", port=config.PORT)


if __name__ == "__main__":
  main()
