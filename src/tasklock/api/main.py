"""
Lock API Service
Exposes the task lock lifecycle and gap validation over HTTP.
"""

import datetime
import logging
from typing import Any, Optional

import uvicorn
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, Field

from .. import __version__
from ..config import Settings, get_config
from ..engine import Engine, build_engine
from ..gap_validator import NO_ACTIVE_TASK_MESSAGE, ChangedFilesProvider, DeepAnalyzer
from ..lock_controller import LockState
from ..utils.problem_details import setup_problem_detail_handlers

logger = logging.getLogger(__name__)

SERVICE_NAME = "tasklock-api"


# Request/Response models
class StartRequest(BaseModel):
    task_id: str = Field(..., min_length=1)
    title: Optional[str] = None
    scopes: Optional[list[str]] = Field(
        None, description="Allowed scopes; read from the tasks file when omitted"
    )
    actor: str = Field("api", min_length=1)


class EndRequest(BaseModel):
    task_id: str = Field(..., min_length=1)
    actor: str = Field("api", min_length=1)


class ForceUnlockRequest(BaseModel):
    actor: str = Field("api", min_length=1)
    force: bool = False


class ValidateRequest(BaseModel):
    deep: bool = False


def create_app(
    settings: Optional[Settings] = None,
    changed_files: Optional[ChangedFilesProvider] = None,
    deep_analyzer: Optional[DeepAnalyzer] = None,
) -> FastAPI:
    """Create the FastAPI application for one worktree."""
    app = FastAPI(
        title="Lock API Service",
        description="Task lock lifecycle and scope gap validation",
        version=__version__,
    )
    setup_problem_detail_handlers(app)
    security = HTTPBearer(auto_error=False)

    def get_settings() -> Settings:
        return settings or get_config()

    def require_token(
        credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
        current: Settings = Depends(get_settings),
    ) -> None:
        expected = current.api_token
        if not expected:
            return
        if credentials is None or credentials.credentials != expected:
            raise HTTPException(
                status_code=401,
                detail="Invalid or missing bearer token",
                headers={"WWW-Authenticate": "Bearer"},
            )

    def get_engine(request: Request, current: Settings = Depends(get_settings)) -> Engine:
        engine = getattr(request.app.state, "engine", None)
        if engine is None:
            engine = build_engine(current, changed_files=changed_files, deep_analyzer=deep_analyzer)
            request.app.state.engine = engine
        return engine

    # Health check endpoint
    @app.get("/health", tags=["health"])
    def health() -> dict[str, Any]:
        """Health check endpoint."""
        return {
            "status": "success",
            "service": SERVICE_NAME,
            "date": datetime.datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
            "version": __version__,
        }

    @app.get("/lock", tags=["lock"], dependencies=[Depends(require_token)])
    def get_lock(engine: Engine = Depends(get_engine)) -> dict[str, Any]:
        """Current lock state and record."""
        lock = engine.controller.current_lock()
        return {
            "state": (LockState.LOCKED if lock else LockState.UNLOCKED).value,
            "lock": lock.to_record() if lock else None,
        }

    @app.post("/lock/start", tags=["lock"], dependencies=[Depends(require_token)])
    def start_task(request: StartRequest, engine: Engine = Depends(get_engine)) -> dict[str, Any]:
        """Lock a task, with explicit scopes or those of its declaration."""
        if request.scopes is None:
            lock = engine.controller.start_from_tasks(
                request.task_id, request.actor, engine.tasks_file
            )
        else:
            lock = engine.controller.start(
                request.task_id, request.title or request.task_id, request.scopes, request.actor
            )
        return {"status": "success", "lock": lock.to_record()}

    @app.post("/lock/end", tags=["lock"], dependencies=[Depends(require_token)])
    def end_task(request: EndRequest, engine: Engine = Depends(get_engine)) -> dict[str, Any]:
        """Release the active task."""
        lock = engine.controller.end(request.task_id, request.actor)
        return {"status": "success", "ended": lock.to_record()}

    @app.post("/lock/force-unlock", tags=["lock"], dependencies=[Depends(require_token)])
    def force_unlock(request: ForceUnlockRequest, engine: Engine = Depends(get_engine)) -> dict[str, Any]:
        """Diagnose the state directory; clear it when ``force`` is set."""
        diagnosis = engine.controller.diagnose()
        if not request.force:
            return {"status": "dry_run", "diagnosis": diagnosis.render()}

        result = engine.controller.force_unlock(request.actor)
        return {
            "status": "success",
            "previous_task_id": result.previous_task_id,
            "was_corrupt": result.was_corrupt,
            "record_removed": result.record_removed,
            "lock_artifact_removed": result.lock_artifact_removed,
        }

    @app.post("/validate", tags=["validate"], dependencies=[Depends(require_token)])
    def validate(request: ValidateRequest, engine: Engine = Depends(get_engine)) -> dict[str, Any]:
        """Run gap validation for the active task."""
        report = engine.validator.evaluate(deep=request.deep)
        if report is None:
            return {"status": "no_active_task", "message": NO_ACTIVE_TASK_MESSAGE}
        return {
            "status": "clean" if report.is_clean else "violations",
            "report": report.model_dump(),
            "text": report.render(),
        }

    return app


app = create_app()


def main(host: str = "127.0.0.1", port: int = 8000) -> None:
    """Run the API with uvicorn."""
    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    main()
