"""DAO bridge — webhook entry point.

Receives chain-data provider webhooks for the governance contract, runs
each delivery through SignalRuntime, and answers with the status code the
pipeline chose.

Flow for one delivery:
    POST /api/v1/webhooks/onchain/cogni-signal
        → read the raw body once
        → SignalRuntime.process_delivery(headers, raw body)
            → detect provider → verify signature → parse tx hashes
            → per hash: fetch receipt → decode → validate → execute
        → 200 / 204 / 400 / 401 / 422, or 500 on an unhandled fault

Process-wide clients (httpx for GitHub, AsyncWeb3 for the RPC endpoint)
are created in the lifespan and closed on shutdown. Nothing is built at
import time.

Run locally:
    uvicorn main:app --reload
"""

import logging
import logging.handlers
import os
import pathlib
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import httpx
import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from web3 import AsyncWeb3

load_dotenv()

from config import Settings
from core.runtime import SignalRuntime, build_runtime
from vcs.github_api import DEFAULT_HEADERS

__version__ = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

LOG_FORMAT = "%(asctime)s  %(levelname)-8s  %(name)s  %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO", log_file: str | None = None) -> None:
    """Attach a rotating file handler and a console handler to the root logger.

    Safe to call more than once; handlers are only added the first time.
    """
    root = logging.getLogger()
    root.setLevel(level)
    if any(getattr(h, "_dao_bridge", False) for h in root.handlers):
        return

    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        path = pathlib.Path(log_file)
        if not path.is_absolute():
            path = pathlib.Path(__file__).parent / path
        handlers.append(logging.handlers.RotatingFileHandler(
            path, maxBytes=1_000_000, backupCount=3, encoding="utf-8",
        ))
    for handler in handlers:
        handler.setFormatter(formatter)
        handler._dao_bridge = True
        root.addHandler(handler)


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------

def create_app(runtime: SignalRuntime | None = None, allowed_origins: list[str] | None = None) -> FastAPI:
    """Build the FastAPI app.

    Args:
        runtime: A ready SignalRuntime. When given, the lifespan builds no
            clients and reads no environment (tests use this). When None,
            settings are loaded from the environment at startup.
        allowed_origins: CORS origins. Defaults to the comma-separated
            ALLOWED_ORIGINS variable.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if runtime is not None:
            app.state.runtime = runtime
            yield
            return

        settings = Settings.from_env()
        configure_logging(settings.log_level, settings.log_file)

        http = httpx.AsyncClient(base_url=settings.github_api_url, headers=DEFAULT_HEADERS, timeout=30.0)
        w3 = AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(settings.evm_rpc_url))
        app.state.runtime = build_runtime(settings, http=http, eth=w3.eth)
        logger.info(
            "DAO bridge %s started: chain=%s contract=%s dao=%s actions=%s",
            __version__,
            settings.chain_id,
            settings.signal_contract,
            settings.allowed_dao,
            app.state.runtime.registry.list_available(),
        )
        try:
            yield
        finally:
            await http.aclose()
            await w3.provider.disconnect()
            logger.info("DAO bridge stopped.")

    app = FastAPI(title="DAO Bridge", version=__version__, lifespan=lifespan)

    # ALLOWED_ORIGINS overrides the default for production deployments.
    origins = allowed_origins
    if origins is None:
        origins = os.environ.get("ALLOWED_ORIGINS", "http://localhost:3000").split(",")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    # -----------------------------------------------------------------------
    # Health check
    # -----------------------------------------------------------------------

    @app.get("/api/v1/health")
    def health():
        return {
            "status": "ok",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "version": __version__,
        }

    # -----------------------------------------------------------------------
    # On-chain signal webhook
    # -----------------------------------------------------------------------

    @app.post("/api/v1/webhooks/onchain/cogni-signal")
    async def cogni_signal_webhook(request: Request):
        """Receive a chain-data provider delivery and run it through the pipeline.

        The raw body is read once and passed through untouched, because the
        provider signature is computed over the exact bytes.
        """
        raw_body = await request.body()
        try:
            outcome = await request.app.state.runtime.process_delivery(dict(request.headers), raw_body)
        except Exception:
            logger.exception("Unhandled fault while processing webhook delivery.")
            return JSONResponse(status_code=500, content={"error": "internal_error"})

        if outcome.body is None:
            return Response(status_code=outcome.status_code)
        return JSONResponse(status_code=outcome.status_code, content=outcome.body)

    return app


app = create_app()


if __name__ == "__main__":
    _settings = Settings.from_env()
    uvicorn.run("main:app", host=_settings.host, port=_settings.port, reload=False)
