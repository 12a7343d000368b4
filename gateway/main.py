from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.responses import FileResponse, JSONResponse

from common.config import AppSettings
from common.errors import ConfigurationError, PipelineError
from gateway.pipeline import TranscriptPipeline, failure_result
from gateway.session import RequestTracker
from gateway.validation import validate_video_url

logger = logging.getLogger(__name__)

STATIC_DIR = Path(__file__).parent / "static"


def create_app(settings: AppSettings | None = None) -> FastAPI:
    settings = settings or AppSettings()

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        missing = settings.missing_credentials()
        if missing:
            logger.warning("Missing credentials: %s; /getscript will fail until set", ", ".join(missing))
        yield

    app = FastAPI(title="CleanScript", lifespan=lifespan)
    app.state.settings = settings
    app.state.pipeline = TranscriptPipeline(settings)
    app.state.tracker = RequestTracker()

    @app.exception_handler(PipelineError)
    async def pipeline_error_handler(_request: Request, exc: PipelineError):
        return JSONResponse(failure_result(exc).to_wire(), status_code=exc.status_code)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(_request: Request, exc: Exception):
        logger.exception("Unhandled error")
        body = failure_result(exc, debug=settings.gateway.debug).to_wire()
        return JSONResponse(body, status_code=500)

    @app.get("/")
    async def index():
        return FileResponse(STATIC_DIR / "index.html")

    @app.get("/health")
    async def health():
        return {"status": "ok", "active_requests": app.state.tracker.active_count}

    @app.get("/getscript")
    async def getscript(url: str | None = None):
        video_url = validate_video_url(url)

        missing = settings.missing_credentials()
        if missing:
            raise ConfigurationError(f"{missing[0]} environment variable is not set")

        timeout = settings.gateway.request_timeout_s
        async with app.state.tracker.track(video_url) as record:
            try:
                result = await asyncio.wait_for(
                    app.state.pipeline.run(video_url, record.request_id), timeout=timeout
                )
            except asyncio.TimeoutError:
                logger.error("[%s] Request exceeded %gs", record.request_id, timeout)
                result = failure_result(
                    f"Request timed out after {timeout:g} seconds", record.request_id
                )

        return JSONResponse(
            result.to_wire(),
            status_code=200 if result.success else 500,
            headers={"X-Request-ID": record.request_id},
        )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    gateway_settings = app.state.settings.gateway
    logging.basicConfig(
        level=gateway_settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(app, host=gateway_settings.host, port=gateway_settings.port)
