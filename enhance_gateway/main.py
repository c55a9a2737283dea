"""FastAPI application for the prompt enhancement gateway."""

import logging
import time
from contextlib import asynccontextmanager
from typing import Callable, Dict

import httpx
from fastapi import FastAPI, Request
from starlette.responses import JSONResponse

from enhance_gateway.admin import admin_router
from enhance_gateway.admission import AdmissionController
from enhance_gateway.config import Config, load_config
from enhance_gateway.dispatcher import Dispatcher, Enhanced
from enhance_gateway.errors import ValidationError
from enhance_gateway.identity import client_identity
from enhance_gateway.key_manager import KeyManager
from enhance_gateway.reaper import StateReaper

logger = logging.getLogger(__name__)


def create_http_client(config: Config) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        base_url=config.upstream_base_url,
        timeout=httpx.Timeout(config.upstream_timeout_seconds),
        limits=httpx.Limits(max_keepalive_connections=20, max_connections=100),
    )


def wire_state(
    app: FastAPI,
    config: Config,
    http_client: httpx.AsyncClient,
    clock: Callable[[], float] = time.monotonic,
) -> None:
    """Build the gateway components and attach them to ``app.state``."""
    admission = AdmissionController(config, started_at=clock())
    key_manager = KeyManager(config)

    app.state.config = config
    app.state.clock = clock
    app.state.http_client = http_client
    app.state.admission = admission
    app.state.key_manager = key_manager
    app.state.dispatcher = Dispatcher(
        config, admission, key_manager, http_client, clock=clock
    )
    app.state.reaper = StateReaper(admission, config, clock=clock)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle: startup and shutdown."""
    config = load_config()

    logging.basicConfig(level=getattr(logging, config.log_level))

    http_client = create_http_client(config)
    wire_state(app, config, http_client)
    await app.state.reaper.start()

    logger.info("Enhance gateway started with %d keys", len(config.api_keys))

    yield

    await app.state.reaper.stop()
    await http_client.aclose()
    logger.info("Enhance gateway stopped")


app = FastAPI(title="Prompt Enhancement Gateway", lifespan=lifespan)

app.include_router(admin_router)


@app.get("/")
async def root(request: Request) -> Dict[str, object]:
    status = request.app.state.key_manager.get_status(request.app.state.clock())
    return {
        "service": "Prompt Enhancement Gateway",
        "status": "running",
        "keys_available": status["activeKeys"],
        "total_keys": status["totalKeys"],
    }


@app.get("/health")
async def health_check(request: Request) -> Dict[str, object]:
    """Health check endpoint with key pool status."""
    status = request.app.state.key_manager.get_status(request.app.state.clock())
    return {"status": "healthy", **status}


@app.post("/enhance")
async def enhance(request: Request) -> JSONResponse:
    """Enhance a prompt.

    Body: {"text": "..."}; the older {"prompt": "..."} form is accepted too.
    """
    state = request.app.state
    try:
        body = await request.json()
    except ValueError:
        body = None

    if not isinstance(body, dict):
        error = ValidationError(message="Request body must be a JSON object")
        return JSONResponse(content=error.to_payload(), status_code=error.status_code)

    text = body.get("text", body.get("prompt"))
    identity = client_identity(request, state.config.trust_forwarded_for)
    result = await state.dispatcher.enhance(text, identity)

    if isinstance(result, Enhanced):
        return JSONResponse(content={"enhancedText": result.text})
    return JSONResponse(
        content=result.to_payload(),
        status_code=result.status_code,
        headers=result.headers(),
    )


def run() -> None:
    """Run the gateway under uvicorn."""
    import uvicorn

    config = load_config()
    uvicorn.run(
        "enhance_gateway.main:app",
        host=config.host,
        port=config.port,
        log_level=config.log_level.lower(),
    )
