"""
vswitch Bridge API

HTTP and WebSocket adapter exposing the inbound command interface
(set/get the exposed value of a switch) and the outbound notification
interface (state change events).
"""
from typing import Optional
from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
import structlog
import uuid

from vswitch.config import Settings
from vswitch.api.websocket import event_hub, broadcast_switch_state_change
from vswitch.exceptions import BridgeIntegrationError

logger = structlog.get_logger(__name__)

# Global reference to daemon (set by main.py)
_daemon_instance: Optional[object] = None


def set_daemon_instance(daemon):
    """Set the global daemon instance for API access"""
    global _daemon_instance
    _daemon_instance = daemon


def get_daemon_instance():
    """Get the global daemon instance"""
    return _daemon_instance


def attach_bridge(registry) -> None:
    """
    Forward registry state changes to WebSocket clients

    Raises:
        BridgeIntegrationError: The listener could not be registered
    """
    try:
        registry.add_listener(broadcast_switch_state_change)
    except Exception as e:
        raise BridgeIntegrationError(f"Cannot attach WebSocket bridge: {e}") from e
    logger.info("bridge_attached")


def create_app(settings: Settings) -> FastAPI:
    """Create and configure FastAPI application"""

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        description="""
# vswitch API

Virtual switches driven by commands and log keyword triggers.

- **Switches** - list switches, read and set their on/off value, trigger them
- **Reload** - re-read the configuration file without restarting
- **WebSocket** - real-time `switch_state_changed` events at `/ws`
        """,
        docs_url="/docs" if settings.api_docs_enabled else None,
        redoc_url="/redoc" if settings.api_docs_enabled else None,
        openapi_tags=[
            {
                "name": "system",
                "description": "Health and status endpoints.",
            },
            {
                "name": "websocket",
                "description": "Connect to `/ws` to receive switch state changes.",
            },
            {
                "name": "switches",
                "description": "Read and command virtual switches.",
            },
        ],
    )

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health", summary="Health Check", tags=["system"])
    async def health_check():
        """Health check endpoint for monitoring"""
        return {
            "status": "healthy",
            "version": settings.api_version,
            "service": "vswitch",
        }

    @app.get("/status", summary="System Status", tags=["system"])
    async def get_status():
        """Registry, scheduler and WebSocket statistics"""
        daemon = get_daemon_instance()

        response = {
            "status": "running",
            "version": settings.api_version,
            "service": "vswitch",
        }

        registry = getattr(daemon, "registry", None) if daemon else None
        if registry is not None:
            response["registry"] = registry.get_statistics()
            response["scheduled_calls"] = registry.scheduler.get_statistics()
            response["switches"] = {
                c.name: c.get_statistics() for c in registry.controllers.values()
            }

        response["websocket"] = event_hub.get_statistics()
        return response

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket):
        """
        WebSocket endpoint for switch state changes

        Send {"action": "watch", "switches": ["Doorbell"]} to receive only
        those switches (watching nothing receives every switch),
        {"action": "unwatch", ...} to drop them again, and {"action": "ping"}
        as keepalive.
        """
        client_id = str(uuid.uuid4())
        await event_hub.register(websocket, client_id)

        try:
            while True:
                data = await websocket.receive_json()
                action = data.get("action")

                if action in ("watch", "unwatch"):
                    names = data.get("switches", [])
                    if action == "watch":
                        watched = event_hub.watch(client_id, names)
                    else:
                        watched = event_hub.unwatch(client_id, names)
                    await event_hub.reply(
                        client_id, {"type": "watching", "switches": sorted(watched)}
                    )

                elif action == "ping":
                    await event_hub.reply(client_id, {"type": "pong"})

                else:
                    await event_hub.reply(
                        client_id, {"type": "error", "detail": f"Unknown action: {action!r}"}
                    )

        except WebSocketDisconnect:
            event_hub.unregister(client_id)

    from vswitch.api.routes import switches

    app.include_router(switches.router, prefix="/api/switches", tags=["switches"])

    return app
