import os
import time
from contextlib import asynccontextmanager
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException

from graph.pipeline import LeadPipeline
from tools import responses
from tools.airtable import AirtableClient
from tools.errors import StoreError, StoreNotFoundError
from tools.llm import LLMClient
from tools.messages import custom_error, get_message
from tools.progress import ProgressStore
from tools.stream import stream_progress
from tools.validation import validate_lead

# Load environment variables
load_dotenv()

# Configure logging
logger.add(os.getenv("LOG_FILE", "logs/app.log"), rotation="1 day", retention="7 days", level="INFO")

VERSION = "1.0.0"


def build_pipeline() -> LeadPipeline:
    """Wire the pipeline from environment configuration."""
    return LeadPipeline(progress=ProgressStore(), store=AirtableClient(), enricher=LLMClient())


async def _read_payload(req: Request) -> Optional[dict]:
    try:
        payload = await req.json()
    except ValueError:
        return None
    return payload if isinstance(payload, dict) else None


def create_app(pipeline: Optional[LeadPipeline] = None) -> FastAPI:
    pipeline = pipeline or build_pipeline()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Lead capture API started")
        yield
        await pipeline.drain()
        logger.info("Lead capture API stopped")

    app = FastAPI(
        title="Lead Capture API",
        description="Lead capture with Airtable persistence and AI enrichment",
        version=VERSION,
        lifespan=lifespan,
    )
    app.state.pipeline = pipeline

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[os.getenv("CORS_ORIGIN", "http://localhost:3000")],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.post("/lead")
    async def submit_lead(req: Request):
        """
        Accept a lead and process it in the background.

        Expected payload:
        {
            "full_name": "Jane Doe",
            "email": "jane@acme.com",
            "company": "Acme",
            "budget": "$5k – $10k",
            "timeline": "ASAP",
            "message": "Need automation help",
            "source": "website"
        }

        Validation runs inside the pipeline; follow the returned
        sessionId on /lead/progress/{sessionId}.
        """
        payload = await _read_payload(req)
        if payload is None:
            return responses.error(get_message("CLIENT", "BAD_REQUEST"), status_code=400)

        logger.info(f"Received lead: {payload.get('email', 'unknown')}")
        session_id = pipeline.submit(payload)

        content = {**get_message("SUCCESS", "LEAD_PROCESSING"), "sessionId": session_id}
        return JSONResponse(status_code=202, content=content)

    @app.post("/lead/sync")
    async def submit_lead_sync(req: Request):
        """Validate and save a lead in the request cycle, without enrichment."""
        payload = await _read_payload(req)
        if payload is None:
            return responses.error(get_message("CLIENT", "BAD_REQUEST"), status_code=400)

        logger.info(f"Received lead (sync): {payload.get('email', 'unknown')}")
        result = validate_lead(payload)
        if not result.accepted:
            return responses.validation_error(result.first_problem)

        try:
            record_id = await pipeline.deps.store.create_lead_record(result.lead)
        except StoreError as e:
            logger.error(f"Airtable error: [{e.code}] {e.message}")
            return responses.external_service_error("Airtable", e)

        logger.info(f"Lead saved to Airtable: {record_id}")
        return responses.success(get_message("SUCCESS", "LEAD_CAPTURED"), {"leadId": record_id})

    @app.get("/lead/progress/{session_id}")
    async def lead_progress(session_id: str, req: Request):
        """Server-sent event stream of progress snapshots for one submission."""
        if session_id not in pipeline.progress:
            return responses.error(get_message("CLIENT", "SESSION_NOT_FOUND"), status_code=404)

        return StreamingResponse(
            stream_progress(session_id, pipeline.progress, req.is_disconnected),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
        )

    @app.get("/admin/leads/{record_id}")
    async def get_lead(record_id: str):
        """Fetch a stored lead record (for debugging)."""
        try:
            record = await pipeline.deps.store.get_lead_record(record_id)
        except StoreNotFoundError as e:
            return responses.error(custom_error(e.message, e.code), e, status_code=404)
        except StoreError as e:
            return responses.external_service_error("Airtable", e)
        return responses.success(get_message("SUCCESS", "LEAD_RETRIEVED"), record)

    @app.get("/health")
    def health():
        """Health check endpoint."""
        deps = pipeline.deps
        return {
            "status": "healthy",
            "timestamp": time.time(),
            "version": VERSION,
            "services": {
                "airtable": "configured" if getattr(deps.store, "configured", False) else "not_configured",
                "openai": "configured" if getattr(deps.enricher, "configured", False) else "not_configured",
                "workflow": "ready",
            },
            "active_sessions": len(pipeline.progress),
            "active_runs": pipeline.active_runs,
        }

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return responses.error(get_message("CLIENT", "NOT_FOUND"), status_code=404)
        return responses.error(custom_error(str(exc.detail), "HTTP_ERROR"), status_code=exc.status_code)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception: {exc}")
        return responses.error(get_message("SERVER", "INTERNAL_ERROR"), exc, status_code=500)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    logger.info("Starting Lead Capture API")

    uvicorn.run(
        "app:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "3001")),
        reload=os.getenv("APP_ENV", "production").lower() == "development",
        log_level="info",
    )
