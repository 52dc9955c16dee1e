"""
FastAPI app for the task tracker.
Provides the JSON task API, server-rendered views and an SSE update stream.
"""

import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import HTMLResponse, JSONResponse, StreamingResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates

from config import Settings, load_settings
from models.task_models import StatusUpdateRequest, TaskCreateRequest
from services.cycles import CYCLE_CHOICES
from services.errors import NotFoundError, PersistError
from services.task_store import TaskStore
from services.views import MAX_YEAR, MIN_YEAR, calendar_month, flatten, gantt_rows, kanban_columns
from utils.sse import UpdateNotifier

load_dotenv()

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

BASE_DIR = Path(__file__).resolve().parent


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    if first.get("type") == "json_invalid":
        return "Invalid JSON"
    field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    msg = str(first.get("msg", "invalid value")).removeprefix("Value error, ")
    return f"{field}: {msg}" if field else msg


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the app around an explicitly constructed store and notifier."""
    settings = settings or load_settings()

    notifier = UpdateNotifier(keepalive_seconds=settings.sse_keepalive_seconds)
    store = TaskStore(
        settings.db_path,
        notifier=notifier,
        auto_complete_parent=settings.auto_complete_parent,
        sort_tasks=settings.sort_tasks,
    )
    store.load()

    app = FastAPI(
        title="Task Tracker API",
        description="Personal task tracker with subtasks, cycles and live updates",
        version="1.0.0",
    )
    app.state.settings = settings
    app.state.store = store
    app.state.notifier = notifier

    app.mount("/static", StaticFiles(directory=BASE_DIR / "static"), name="static")
    templates = Jinja2Templates(directory=str(BASE_DIR / "templates"))
    templates.env.globals["cycle_choices"] = CYCLE_CHOICES

    # ---------- Error mapping ----------

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        logger.info(f"Rejected {request.method} {request.url.path}: {exc.errors()}")
        return JSONResponse(status_code=400, content={"detail": _validation_message(exc)})

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError):
        logger.info(f"{request.method} {request.url.path}: {exc}")
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(PersistError)
    async def persist_error_handler(request: Request, exc: PersistError):
        logger.error(f"{request.method} {request.url.path}: {exc}")
        return JSONResponse(status_code=500, content={"detail": str(exc)})

    # ---------- Health ----------

    @app.get("/health")
    def health_check():
        return {
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "tasks": len(store),
            "subscribers": notifier.subscriber_count,
        }

    # ---------- Tasks ----------

    @app.get("/api/tasks")
    def list_tasks() -> List[dict]:
        return [t.to_dict() for t in store.list_tasks()]

    @app.post("/api/tasks", status_code=201)
    def add_task(request: TaskCreateRequest):
        task = store.add_task(request.text, request.cycle)
        return task.to_dict()

    @app.get("/api/tasks/{task_id}")
    def get_task(task_id: str):
        return store.get_task(task_id).to_dict()

    @app.delete("/api/tasks/{task_id}")
    def delete_task(task_id: str):
        store.delete_task(task_id)
        return {"status": "deleted", "id": task_id}

    @app.post("/api/tasks/{task_id}/subtask", status_code=201)
    def add_subtask(task_id: str, request: TaskCreateRequest):
        subtask = store.add_subtask(task_id, request.text, request.cycle)
        return subtask.to_dict()

    @app.patch("/api/tasks/{task_id}/status")
    def update_status(task_id: str, request: StatusUpdateRequest):
        store.update_status(task_id, request.complete)
        return {"status": "ok", "id": task_id, "complete": request.complete}

    @app.patch("/api/tasks/{task_id}/subtasks/{subtask_id}/status")
    def update_subtask_status(task_id: str, subtask_id: str, request: StatusUpdateRequest):
        store.update_subtask_status(task_id, subtask_id, request.complete)
        return {"status": "ok", "id": subtask_id, "complete": request.complete}

    @app.delete("/api/tasks/{task_id}/subtasks/{subtask_id}")
    def delete_subtask(task_id: str, subtask_id: str):
        store.delete_subtask(task_id, subtask_id)
        return {"status": "deleted", "id": subtask_id}

    # ---------- SSE Stream ----------

    @app.get("/api/updates")
    async def stream_updates(request: Request):
        """SSE stream that emits `data: update` after every store mutation."""
        return StreamingResponse(
            notifier.event_generator(request.is_disconnected),
            media_type="text/event-stream",
            headers={
                "Cache-Control": "no-cache",
                "Connection": "keep-alive",
                "X-Accel-Buffering": "no",
            },
        )

    # ---------- Pages ----------

    @app.get("/", response_class=HTMLResponse)
    def home_page(request: Request):
        return templates.TemplateResponse(request, "home.html", {"rows": flatten(store.list_tasks())})

    @app.get("/kanban", response_class=HTMLResponse)
    def kanban_page(request: Request):
        now = datetime.now(timezone.utc)
        columns = kanban_columns(store.list_tasks(), now)
        return templates.TemplateResponse(request, "kanban.html", {"columns": columns})

    @app.get("/gantt", response_class=HTMLResponse)
    def gantt_page(request: Request):
        now = datetime.now(timezone.utc)
        return templates.TemplateResponse(request, "gantt.html", {"chart": gantt_rows(store.list_tasks(), now)})

    @app.get("/calendar", response_class=HTMLResponse)
    def calendar_page(
        request: Request,
        year: Optional[int] = Query(None, ge=MIN_YEAR, le=MAX_YEAR),
        month: Optional[int] = Query(None, ge=1, le=12),
    ):
        now = datetime.now(timezone.utc)
        cal = calendar_month(store.list_tasks(), year or now.year, month or now.month)
        return templates.TemplateResponse(request, "calendar.html", {"cal": cal, "today": now.date()})

    logger.info(f"Task tracker ready: {len(store)} tasks from {settings.db_path}")
    return app


# ---------- Entry point ----------

if __name__ == "__main__":
    settings = load_settings()
    uvicorn.run(
        "main:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        reload=settings.reload,
        log_level=settings.log_level.lower(),
    )
