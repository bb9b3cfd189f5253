import logging
import os
from typing import Any, Dict, List, Optional

import httpx
import uvicorn
from fastapi import FastAPI, HTTPException, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel

from . import config
from .broadcast import ConnectionHub, TrackRegistry
from .realtime import RealtimeClient, VendorError

logger = logging.getLogger(__name__)


class NewSessionIn(BaseModel):
    sdp: str


class NewTracksIn(BaseModel):
    trackObjects: List[Dict[str, Any]]
    sessionId: Optional[str] = None
    sdp: Optional[str] = None


class AnswerIn(BaseModel):
    answer: str
    sessionId: Optional[str] = None


def _cors_kwargs(raw_origins: str) -> Dict[str, Any]:
    origin_tokens = [
        token.strip() for token in raw_origins.split(",") if token.strip() and token.strip() != "*"
    ]
    cors_kwargs: Dict[str, Any] = {
        "allow_methods": ["*"],
        "allow_headers": ["*"],
        "allow_credentials": True,
    }
    if origin_tokens:
        cors_kwargs["allow_origins"] = origin_tokens
    else:
        cors_kwargs["allow_origins"] = []
        cors_kwargs["allow_origin_regex"] = r"https?://.*"
    return cors_kwargs


def _peer_address(websocket: WebSocket) -> str:
    forwarded = websocket.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if websocket.client:
        return websocket.client.host
    return "unknown"


async def _call_vendor(coro):
    try:
        return await coro
    except VendorError as exc:
        logger.warning("Realtime API error: %s", exc.description)
        raise HTTPException(status_code=502, detail=exc.description)
    except httpx.TimeoutException:
        logger.warning("Realtime API request timed out")
        raise HTTPException(status_code=504, detail="Realtime API request timed out")
    except httpx.HTTPError as exc:
        detail = str(exc) or repr(exc)
        logger.warning("Realtime API request failed: %s", detail)
        raise HTTPException(status_code=502, detail=f"Realtime API request failed: {detail}")


def create_app(
    registry: Optional[TrackRegistry] = None,
    realtime: Optional[RealtimeClient] = None,
    *,
    static_dir: Optional[str] = None,
) -> FastAPI:
    registry = registry if registry is not None else TrackRegistry()
    if realtime is None:
        realtime = RealtimeClient(
            config.APP_ID,
            config.APP_SECRET,
            registry,
            base_url=config.REALTIME_BASE_URL,
            timeout=config.REALTIME_TIMEOUT_SEC,
        )
    hub = ConnectionHub(registry, send_timeout=config.BROADCAST_SEND_TIMEOUT_SEC)

    app = FastAPI(title="Track Relay")
    app.add_middleware(CORSMiddleware, **_cors_kwargs(config.CORS_ORIGIN))
    app.state.registry = registry
    app.state.realtime = realtime
    app.state.hub = hub

    @app.on_event("startup")
    async def _startup() -> None:
        if not config.credentials_configured():
            logger.warning(config.MISSING_CREDENTIALS_HINT)

    @app.on_event("shutdown")
    async def _shutdown() -> None:
        await realtime.aclose()

    @app.post("/api/newSession")
    async def new_session(body: NewSessionIn):
        result = await _call_vendor(realtime.new_session(body.sdp))
        return {"newSessionResult": result}

    @app.post("/api/newTracks")
    async def new_tracks(body: NewTracksIn):
        result = await _call_vendor(
            realtime.new_tracks(body.trackObjects, body.sessionId, body.sdp)
        )
        return {"newLocalTracksResult": result}

    @app.post("/api/sendAnswerSDP")
    async def send_answer_sdp(body: AnswerIn):
        await _call_vendor(realtime.send_answer_sdp(body.answer, body.sessionId))
        return {"success": True}

    @app.get("/health")
    async def health(request: Request):
        state = request.app.state
        return {
            "ok": True,
            "tracks": len(state.registry),
            "connections": len(state.hub),
            "appConfigured": config.credentials_configured(),
        }

    @app.get("/robots.txt")
    async def robots():
        if not os.path.isfile(config.ROBOTS_PATH):
            raise HTTPException(status_code=404, detail="robots.txt not found")
        return FileResponse(config.ROBOTS_PATH, media_type="text/plain")

    @app.websocket("/")
    async def track_stream(websocket: WebSocket):
        hub: ConnectionHub = websocket.app.state.hub
        connection = await hub.connect(websocket, peer=_peer_address(websocket))
        try:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    break
                raw = message.get("text")
                if raw is None:
                    raw = message.get("bytes") or b""
                await hub.handle(connection, raw)
        except WebSocketDisconnect:
            pass
        except Exception:
            logger.exception("connection error from %s", connection.peer)
        finally:
            await hub.disconnect(connection)

    static_root = static_dir or config.STATIC_DIR
    if os.path.isdir(static_root):
        index_path = os.path.join(static_root, config.STATIC_INDEX)

        @app.get("/")
        async def index():
            if not os.path.isfile(index_path):
                raise HTTPException(status_code=404, detail="Not Found")
            return FileResponse(index_path)

        app.mount("/", StaticFiles(directory=static_root), name="static")

    return app


app = create_app()


def run() -> None:
    config.configure_logging()
    logger.info("server started, view your webpage at http://localhost:%s", config.PORT)
    uvicorn.run(app, host=config.HOST, port=config.PORT, log_level=config.LOG_LEVEL.lower())


if __name__ == "__main__":
    run()
