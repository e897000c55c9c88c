"""HTTP entry point for the relay.

Telegram posts every update to ``/webhook``.  The handler answers with an
empty body: 200 for handled updates and no-ops, 500 when the pipeline
failed.  The adapter and its collaborators are built once per process on
first use; tests swap them through ``app.dependency_overrides``.
"""

from functools import lru_cache

from fastapi import Depends, FastAPI, Request, Response
from starlette.concurrency import run_in_threadpool

from apps.chat_adapter import ChatAdapter
from apps.orchestrator import build_orchestrator
from lib.config.relay_loader import load_relay_config
from lib.telemetry.logger import configure_logging, get_logger

logger = get_logger(__name__)


@lru_cache(maxsize=1)
def get_adapter() -> ChatAdapter:
    config = load_relay_config()
    configure_logging(config.log_level)
    return ChatAdapter(build_orchestrator(config))


def _empty(status_code: int) -> Response:
    return Response(content=b"", status_code=status_code, media_type="application/json")


def create_app() -> FastAPI:
    app = FastAPI(title="telegram-ai-relay")

    @app.post("/webhook")
    @app.post("/")
    async def webhook(request: Request, adapter: ChatAdapter = Depends(get_adapter)) -> Response:
        """Run one Telegram update through the relay."""

        body = await request.body()
        try:
            # the pipeline does blocking I/O
            await run_in_threadpool(adapter.handle_update, body)
        except Exception:
            logger.exception("webhook update failed")
            return _empty(500)
        return _empty(200)

    @app.exception_handler(Exception)
    async def unhandled(request: Request, exc: Exception) -> Response:
        logger.error("relay setup failed: %s", exc)
        return _empty(500)

    return app


app = create_app()
