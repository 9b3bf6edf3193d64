"""Main application entry point with FastAPI."""

import logging
import sys
from contextlib import asynccontextmanager
from typing import Callable

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse, Response
from pydantic import ValidationError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from . import operations, persistence
from .completion_client import CompletionClient, get_completion_client
from .config import get_settings
from .database import check_database_health, dispose_engine, get_db, init_database, list_tables
from .errors import HealthMateError
from .models import PreferenceKind
from .operations import operation_slots
from .schemas import (
    AnalyzeReportRequest,
    DietSuggestionsRequest,
    GeneratePlanRequest,
    HealthChatRequest,
    PreferenceRequest,
    RegeneratePlanRequest,
    SavePlanRequest,
    UploadReportRequest,
)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
}


def validate_environment():
    """Validate all environment variables on startup."""
    try:
        settings = get_settings()
        logger.info("Environment variables validated successfully")
        return settings
    except ValidationError as e:
        logger.error("ERROR: Invalid environment variables:")
        logger.error(str(e))
        sys.exit(1)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown."""
    logger.info("Starting HealthMate...")

    settings = validate_environment()
    logger.info(f"=== Completion provider: {settings.completion_provider} ===")

    if settings.create_tables_on_startup:
        init_database()
    logger.info(f"=== Tables in database: {list_tables()} ===")

    logger.info("HealthMate started successfully")

    yield

    logger.info("Shutting down HealthMate...")
    dispose_engine()
    logger.info("HealthMate shutdown complete")


# Create FastAPI app
app = FastAPI(
    title="HealthMate",
    description="Diet suggestions, diet plans, health chat and report summaries",
    version="1.0.0",
    lifespan=lifespan,
)


@app.exception_handler(HealthMateError)
async def healthmate_error_handler(request: Request, exc: HealthMateError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {type(exc).__name__}: {exc}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc)},
        headers=CORS_HEADERS,
    )


# =============================================================================
# Request handlers shared with the web client
# =============================================================================


def _preflight() -> Response:
    return Response(status_code=200, headers=CORS_HEADERS)


async def _handle(request: Request, db: Session, name: str, work: Callable[[dict], dict]) -> JSONResponse:
    """Run a handler body in the threadpool with uniform error mapping.

    Every failure becomes {"error": message} with status 500 and the
    session is rolled back so nothing from the failed request is kept.
    """
    try:
        body = await request.json()
        result = await run_in_threadpool(work, body)
        return JSONResponse(content=result, headers=CORS_HEADERS)
    except Exception as e:
        logger.error(f"Error in {name} handler: {type(e).__name__}: {e}")
        db.rollback()
        return JSONResponse(status_code=500, content={"error": str(e)}, headers=CORS_HEADERS)


@app.options("/generate-diet-suggestions")
async def generate_diet_suggestions_preflight():
    return _preflight()


@app.post("/generate-diet-suggestions")
async def generate_diet_suggestions(
    request: Request,
    db: Session = Depends(get_db),
    client: CompletionClient = Depends(get_completion_client),
):
    """Structured suggestions when no prompt is sent, plan text otherwise."""

    def work(body: dict) -> dict:
        payload = DietSuggestionsRequest.model_validate(body)
        with operation_slots.hold(payload.user_id, "generate-diet-suggestions"):
            if payload.free_text:
                text = operations.generate_plan_text(
                    client, payload.prompt, payload.regenerate_section
                )
                return {"success": True, "suggestions": text}

            result = operations.generate_suggestions(db, client, payload.user_id)
            db.commit()
            return {
                "success": True,
                "suggestions": [s.to_dict() for s in result.suggestions],
                "source": result.source.value,
            }

    return await _handle(request, db, "generate-diet-suggestions", work)


@app.options("/analyze-report")
async def analyze_report_preflight():
    return _preflight()


@app.post("/analyze-report")
async def analyze_report(
    request: Request,
    db: Session = Depends(get_db),
    client: CompletionClient = Depends(get_completion_client),
):
    def work(body: dict) -> dict:
        payload = AnalyzeReportRequest.model_validate(body)
        return {"summary": operations.analyze_report(client, payload.file_name, payload.content)}

    return await _handle(request, db, "analyze-report", work)


@app.options("/health-chat")
async def health_chat_preflight():
    return _preflight()


@app.post("/health-chat")
async def health_chat(
    request: Request,
    db: Session = Depends(get_db),
    client: CompletionClient = Depends(get_completion_client),
):
    def work(body: dict) -> dict:
        payload = HealthChatRequest.model_validate(body)
        with operation_slots.hold(payload.user_id, "health-chat"):
            chat, reply = operations.send_chat_message(
                db,
                client,
                payload.user_id,
                payload.message,
                chat_id=payload.chat_id,
                history_limit=get_settings().chat_history_limit,
            )
            db.commit()
            return {"response": reply, "chatId": chat.id}

    return await _handle(request, db, "health-chat", work)


# =============================================================================
# Suggestions and preferences
# =============================================================================


@app.get("/users/{user_id}/suggestions")
def get_suggestions(user_id: str, db: Session = Depends(get_db)):
    rows = persistence.list_suggestions(db, user_id)
    return {"suggestions": [row.to_dict() for row in rows]}


@app.get("/users/{user_id}/preferences")
def get_preferences(user_id: str, db: Session = Depends(get_db)):
    return persistence.get_preferences(db, user_id)


@app.post("/users/{user_id}/preferences")
def add_preference(user_id: str, payload: PreferenceRequest, db: Session = Depends(get_db)):
    persistence.add_preference(db, user_id, payload.kind, payload.item)
    return persistence.get_preferences(db, user_id)


@app.delete("/users/{user_id}/preferences/{kind}/{item}")
def remove_preference(user_id: str, kind: PreferenceKind, item: str, db: Session = Depends(get_db)):
    persistence.remove_preference(db, user_id, kind, item)
    return persistence.get_preferences(db, user_id)


# =============================================================================
# Diet plans
# =============================================================================


@app.post("/users/{user_id}/plans/generate")
def generate_plan(
    user_id: str,
    payload: GeneratePlanRequest,
    db: Session = Depends(get_db),
    client: CompletionClient = Depends(get_completion_client),
):
    with operation_slots.hold(user_id, "generate-plan"):
        plan = operations.generate_plan_for_goal(db, client, user_id, payload.goal)
    return {"plan": plan}


@app.post("/users/{user_id}/plans/regenerate")
def regenerate_plan(
    user_id: str,
    payload: RegeneratePlanRequest,
    db: Session = Depends(get_db),
    client: CompletionClient = Depends(get_completion_client),
):
    with operation_slots.hold(user_id, f"regenerate-{payload.section.lower()}"):
        plan = operations.regenerate_plan_section(
            db, client, user_id, payload.plan, payload.section, goal=payload.goal
        )
    return {"plan": plan}


@app.get("/users/{user_id}/plans")
def get_plans(user_id: str, db: Session = Depends(get_db)):
    return {"plans": [plan.to_dict() for plan in persistence.list_plans(db, user_id)]}


@app.post("/users/{user_id}/plans")
def save_plan(user_id: str, payload: SavePlanRequest, db: Session = Depends(get_db)):
    with operation_slots.hold(user_id, "save-plan"):
        plan = persistence.save_plan(db, user_id, payload.content, goal=payload.goal)
        db.commit()
    return plan.to_dict()


# =============================================================================
# Chats and reports
# =============================================================================


@app.get("/users/{user_id}/chats")
def get_chats(user_id: str, db: Session = Depends(get_db)):
    return {"chats": [chat.to_dict() for chat in persistence.list_chats(db, user_id)]}


@app.get("/users/{user_id}/chats/{chat_id}/messages")
def get_chat_messages(user_id: str, chat_id: int, db: Session = Depends(get_db)):
    chat = persistence.get_chat(db, chat_id, user_id=user_id)
    return {"messages": [m.to_dict() for m in persistence.get_chat_messages(db, chat.id)]}


@app.delete("/users/{user_id}/chats/{chat_id}")
def delete_chat(user_id: str, chat_id: int, db: Session = Depends(get_db)):
    chat = persistence.get_chat(db, chat_id, user_id=user_id)
    persistence.delete_chat(db, chat)
    return {"deleted": chat_id}


@app.get("/users/{user_id}/reports")
def get_reports(user_id: str, db: Session = Depends(get_db)):
    return {"reports": [r.to_dict() for r in persistence.list_reports(db, user_id)]}


@app.post("/users/{user_id}/reports")
def upload_report(
    user_id: str,
    payload: UploadReportRequest,
    db: Session = Depends(get_db),
    client: CompletionClient = Depends(get_completion_client),
):
    with operation_slots.hold(user_id, "upload-report"):
        report = operations.upload_report(db, client, user_id, payload.file_name, payload.content)
        db.commit()
    return report.to_dict()


# =============================================================================
# Status
# =============================================================================


@app.get("/users/{user_id}/operation")
def get_operation_state(user_id: str):
    return {
        "state": operation_slots.state(user_id).value,
        "operation": operation_slots.current(user_id),
    }


@app.get("/health")
async def health_check():
    """Health check endpoint.

    Verifies database connection and returns status.
    """
    if check_database_health():
        return {"status": "healthy", "database": "connected"}
    return {"status": "unhealthy", "database": "disconnected"}


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "HealthMate",
        "status": "running",
        "version": "1.0.0",
    }
