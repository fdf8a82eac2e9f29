from __future__ import annotations

from typing import Any, Dict, List

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from fastapi.responses import PlainTextResponse

from sitebuilder.core.artifacts import MutationResult
from sitebuilder.core.errors import ArtifactMissingError
from sitebuilder.core.models import (
    GenerationRequest,
    SitemapGenerationRequest,
    StyleGenerationRequest,
    WorkflowStep,
)
from sitebuilder.core.session import BuilderSession, SessionRegistry, get_session_registry
from sitebuilder.memory.persistence import get_persistence
from sitebuilder.utils.logging import get_logger
from sitebuilder.utils.schemas import (
    AutoSaveSettings,
    ComponentUpdate,
    ErrorCreate,
    GenerationAccepted,
    ImportRequest,
    PageCreate,
    PageMove,
    PageUpdate,
    ProjectCreate,
    ProjectUpdate,
    SitemapGenerate,
    StepRequest,
    StyleGenerate,
    StyleTokenUpdate,
    UiStateUpdate,
    WarningCreate,
    WireframeGenerate,
)

router = APIRouter(prefix="/api/builder", tags=["builder"])
LOGGER = get_logger(__name__)

_MEDIA_TYPES = {
    "json": "application/json",
    "xml": "application/xml",
    "csv": "text/csv",
    "css": "text/css",
    "scss": "text/x-scss",
}


def registry_dependency() -> SessionRegistry:
    return get_session_registry()


async def session_dependency(
    project_id: str, registry: SessionRegistry = Depends(registry_dependency)
) -> BuilderSession:
    session = await registry.get_or_load(project_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Project not found")
    return session


def _check(result: MutationResult) -> Dict[str, Any]:
    if result.ok:
        return result.model_dump()
    code = 400 if result.reason == "invalid_target" else 404
    raise HTTPException(status_code=code, detail=result.model_dump())


async def _ensure_auto_save(session: BuilderSession) -> None:
    if session.state.auto_save_enabled:
        await session.enable_auto_save(True)


async def _schedule(
    session: BuilderSession,
    kind: str,
    request: GenerationRequest,
    background_tasks: BackgroundTasks,
    *,
    fresh: bool = False,
) -> GenerationAccepted:
    coordinator = session.coordinators[kind]
    if not await coordinator.begin():
        raise HTTPException(status_code=409, detail=f"{kind} generation already in progress")
    background_tasks.add_task(coordinator.run, request, fresh=fresh)
    return GenerationAccepted(project_id=session.project_id or "", kind=kind)


def _text(body: str, fmt: str) -> PlainTextResponse:
    return PlainTextResponse(body, media_type=_MEDIA_TYPES.get(fmt, "text/plain"))


# --- Projects ----------------------------------------------------------------

@router.get("/projects")
async def list_projects(registry: SessionRegistry = Depends(registry_dependency)) -> dict:
    stored = await get_persistence().list_projects()
    return {
        "projects": [p.model_dump() for p in stored],
        "active": registry.project_ids(),
    }


@router.post("/projects", status_code=status.HTTP_201_CREATED)
async def create_project(
    payload: ProjectCreate, registry: SessionRegistry = Depends(registry_dependency)
) -> dict:
    session = registry.new_session()
    project = session.create_project(payload.name, payload.description, payload.website_type)
    registry.register(session)
    await _ensure_auto_save(session)
    return {"project_id": project.id, "project": project.model_dump(mode="json")}


@router.get("/projects/{project_id}")
async def get_project(session: BuilderSession = Depends(session_dependency)) -> dict:
    return session.summary()


@router.patch("/projects/{project_id}")
async def update_project(payload: ProjectUpdate, session: BuilderSession = Depends(session_dependency)) -> dict:
    project = session.update_project(**payload.model_dump(exclude_unset=True))
    return project.model_dump(mode="json")


@router.delete("/projects/{project_id}")
async def delete_project(
    project_id: str,
    registry: SessionRegistry = Depends(registry_dependency),
) -> dict:
    session = registry.get(project_id)
    if session is not None:
        deleted = await session.delete_project(project_id)
        await registry.remove(project_id)
    else:
        deleted = await get_persistence().delete(project_id)
    if not deleted and session is None:
        raise HTTPException(status_code=404, detail="Project not found")
    return {"project_id": project_id, "status": "deleted"}


@router.post("/projects/{project_id}/save")
async def save_project(session: BuilderSession = Depends(session_dependency)) -> dict:
    snapshot = await session.save_project()
    return {"project_id": snapshot.project.id, "last_saved": snapshot.last_saved}


@router.post("/projects/{project_id}/load")
async def load_project(session: BuilderSession = Depends(session_dependency)) -> dict:
    project = await session.load_from_storage()
    if project is None:
        raise HTTPException(status_code=404, detail="Project has never been saved")
    await _ensure_auto_save(session)
    return session.summary()


@router.put("/projects/{project_id}/autosave")
async def configure_autosave(
    payload: AutoSaveSettings, session: BuilderSession = Depends(session_dependency)
) -> dict:
    if payload.interval is not None:
        await session.set_auto_save_interval(payload.interval)
    if payload.enabled is not None:
        await session.enable_auto_save(payload.enabled)
    return {
        "enabled": session.state.auto_save_enabled,
        "interval": session.state.auto_save_interval,
        "running": session.auto_save_running,
    }


# --- Workflow ----------------------------------------------------------------

@router.get("/projects/{project_id}/steps")
async def get_steps(session: BuilderSession = Depends(session_dependency)) -> dict:
    return {
        "active_step": session.state.active_step,
        "completed_steps": session.state.completed_steps,
        "progress": session.stepper.progress(),
        "can_proceed": {step.value: session.can_proceed_to_step(step) for step in WorkflowStep},
    }


@router.post("/projects/{project_id}/steps/active")
async def set_active_step(payload: StepRequest, session: BuilderSession = Depends(session_dependency)) -> dict:
    if not session.can_proceed_to_step(payload.step):
        raise HTTPException(status_code=409, detail=f"Cannot proceed to step '{payload.step.value}' yet")
    session.set_active_step(payload.step)
    return {"active_step": session.state.active_step}


@router.post("/projects/{project_id}/steps/complete")
async def complete_step(payload: StepRequest, session: BuilderSession = Depends(session_dependency)) -> dict:
    session.complete_step(payload.step)
    return {"active_step": session.state.active_step, "completed_steps": session.state.completed_steps}


@router.post("/projects/{project_id}/steps/reset")
async def reset_workflow(session: BuilderSession = Depends(session_dependency)) -> dict:
    session.reset_workflow()
    return {"active_step": session.state.active_step, "completed_steps": []}


@router.get("/projects/{project_id}/generation")
async def generation_states(session: BuilderSession = Depends(session_dependency)) -> dict:
    return {k: v.model_dump(mode="json") for k, v in session.state.generation.items()}


@router.put("/projects/{project_id}/ui")
async def update_ui_state(payload: UiStateUpdate, session: BuilderSession = Depends(session_dependency)) -> dict:
    fields = payload.model_dump(exclude_unset=True)
    if "selected_page_id" in fields:
        _check(session.select_page(fields["selected_page_id"]))
    if fields.get("sidebar_collapsed") is not None:
        session.set_sidebar_collapsed(fields["sidebar_collapsed"])
    return {
        "selected_page_id": session.state.selected_page_id,
        "sidebar_collapsed": session.state.sidebar_collapsed,
    }


# --- Sitemap -----------------------------------------------------------------

@router.post("/projects/{project_id}/sitemap/generate", status_code=status.HTTP_202_ACCEPTED)
async def generate_sitemap(
    payload: SitemapGenerate,
    background_tasks: BackgroundTasks,
    session: BuilderSession = Depends(session_dependency),
) -> GenerationAccepted:
    request = SitemapGenerationRequest(**payload.model_dump())
    return await _schedule(session, "sitemap", request, background_tasks)


@router.post("/projects/{project_id}/sitemap/regenerate", status_code=status.HTTP_202_ACCEPTED)
async def regenerate_sitemap(
    background_tasks: BackgroundTasks, session: BuilderSession = Depends(session_dependency)
) -> GenerationAccepted:
    request = session.regeneration_request("sitemap")
    if request is None:
        raise HTTPException(status_code=422, detail="Not enough context to regenerate the sitemap")
    return await _schedule(session, "sitemap", request, background_tasks, fresh=True)


@router.get("/projects/{project_id}/sitemap")
async def get_sitemap(session: BuilderSession = Depends(session_dependency)) -> dict:
    if session.state.sitemap is None:
        raise HTTPException(status_code=404, detail="No sitemap generated yet")
    return session.state.sitemap.model_dump(mode="json")


@router.get("/projects/{project_id}/sitemap/validate")
async def validate_sitemap(session: BuilderSession = Depends(session_dependency)) -> dict:
    return session.validate_sitemap().model_dump(mode="json")


@router.post("/projects/{project_id}/sitemap/pages", status_code=status.HTTP_201_CREATED)
async def add_page(payload: PageCreate, session: BuilderSession = Depends(session_dependency)) -> dict:
    fields = payload.model_dump(exclude_unset=True, exclude={"parent_id"}, exclude_none=True)
    return _check(session.add_page(payload.parent_id, **fields))


@router.patch("/projects/{project_id}/sitemap/pages/{page_id}")
async def update_page(
    page_id: str, payload: PageUpdate, session: BuilderSession = Depends(session_dependency)
) -> dict:
    return _check(session.update_sitemap_page(page_id, payload.model_dump(exclude_unset=True)))


@router.delete("/projects/{project_id}/sitemap/pages/{page_id}")
async def remove_page(page_id: str, session: BuilderSession = Depends(session_dependency)) -> dict:
    return _check(session.remove_page(page_id))


@router.post("/projects/{project_id}/sitemap/pages/{page_id}/move")
async def move_page(page_id: str, payload: PageMove, session: BuilderSession = Depends(session_dependency)) -> dict:
    return _check(session.move_page(page_id, payload.new_parent_id, payload.new_order))


@router.get("/projects/{project_id}/sitemap/export")
async def export_sitemap(
    format: str = Query(default="json"),
    base_url: str = Query(default=""),
    session: BuilderSession = Depends(session_dependency),
) -> PlainTextResponse:
    try:
        body = session.export_sitemap(format, base_url=base_url)
    except ArtifactMissingError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return _text(body, format)


# --- Wireframes --------------------------------------------------------------

@router.post("/projects/{project_id}/wireframes/generate", status_code=status.HTTP_202_ACCEPTED)
async def generate_wireframes(
    payload: WireframeGenerate,
    background_tasks: BackgroundTasks,
    session: BuilderSession = Depends(session_dependency),
) -> GenerationAccepted:
    if session.state.sitemap is None:
        raise HTTPException(status_code=404, detail="Generate a sitemap first")
    if payload.page_id is None:
        if session.coordinators["wireframe"].is_generating:
            raise HTTPException(status_code=409, detail="wireframe generation already in progress")
        background_tasks.add_task(session.generate_all_wireframes, payload.options)
        return GenerationAccepted(project_id=session.project_id or "", kind="wireframe")

    page = session.store.find_page(payload.page_id)
    if page is None:
        raise HTTPException(status_code=404, detail=f"Page '{payload.page_id}' not found")
    request = session.wireframe_request(page, payload.options)
    return await _schedule(session, "wireframe", request, background_tasks)


@router.post("/projects/{project_id}/wireframes/{page_id}/regenerate", status_code=status.HTTP_202_ACCEPTED)
async def regenerate_wireframe(
    page_id: str, background_tasks: BackgroundTasks, session: BuilderSession = Depends(session_dependency)
) -> GenerationAccepted:
    request = session.regeneration_request("wireframe", page_id)
    if request is None:
        raise HTTPException(status_code=404, detail=f"Page '{page_id}' not found")
    return await _schedule(session, "wireframe", request, background_tasks, fresh=True)


@router.get("/projects/{project_id}/wireframes")
async def list_wireframes(session: BuilderSession = Depends(session_dependency)) -> dict:
    return {
        "wireframes": {k: v.model_dump(mode="json") for k, v in session.state.wireframes.items()},
        "orphaned": session.store.orphaned_wireframes(),
    }


@router.get("/projects/{project_id}/wireframes/{page_id}")
async def get_wireframe(page_id: str, session: BuilderSession = Depends(session_dependency)) -> dict:
    wireframe = session.state.wireframes.get(page_id)
    if wireframe is None:
        raise HTTPException(status_code=404, detail=f"No wireframe for page '{page_id}'")
    return wireframe.model_dump(mode="json")


@router.get("/projects/{project_id}/wireframes/{page_id}/validate")
async def validate_wireframe(page_id: str, session: BuilderSession = Depends(session_dependency)) -> dict:
    result = session.validate_wireframe(page_id)
    if result is None:
        raise HTTPException(status_code=404, detail=f"No wireframe for page '{page_id}'")
    return result.model_dump(mode="json")


@router.patch("/projects/{project_id}/wireframes/{page_id}/components/{component_id}")
async def update_component(
    page_id: str,
    component_id: str,
    payload: ComponentUpdate,
    session: BuilderSession = Depends(session_dependency),
) -> dict:
    return _check(session.update_wireframe_component(page_id, component_id, payload.updates))


@router.delete("/projects/{project_id}/wireframes/{page_id}")
async def delete_wireframe(page_id: str, session: BuilderSession = Depends(session_dependency)) -> dict:
    return _check(session.delete_wireframe(page_id))


# --- Style guide -------------------------------------------------------------

@router.post("/projects/{project_id}/style/generate", status_code=status.HTTP_202_ACCEPTED)
async def generate_style(
    payload: StyleGenerate,
    background_tasks: BackgroundTasks,
    session: BuilderSession = Depends(session_dependency),
) -> GenerationAccepted:
    request = StyleGenerationRequest(**payload.model_dump())
    return await _schedule(session, "style", request, background_tasks)


@router.post("/projects/{project_id}/style/regenerate", status_code=status.HTTP_202_ACCEPTED)
async def regenerate_style(
    background_tasks: BackgroundTasks, session: BuilderSession = Depends(session_dependency)
) -> GenerationAccepted:
    request = session.regeneration_request("style")
    if request is None:
        raise HTTPException(status_code=422, detail="Not enough context to regenerate the style guide")
    return await _schedule(session, "style", request, background_tasks, fresh=True)


@router.get("/projects/{project_id}/style")
async def get_style(session: BuilderSession = Depends(session_dependency)) -> dict:
    if session.state.style_guide is None:
        raise HTTPException(status_code=404, detail="No style guide generated yet")
    return session.state.style_guide.model_dump(mode="json")


@router.patch("/projects/{project_id}/style/tokens")
async def update_style_token(
    payload: StyleTokenUpdate, session: BuilderSession = Depends(session_dependency)
) -> dict:
    try:
        return _check(session.update_style_token(payload.token, *payload.args))
    except TypeError as exc:
        raise HTTPException(status_code=400, detail=f"Bad arguments for '{payload.token}': {exc}")


@router.get("/projects/{project_id}/style/validate")
async def validate_style(session: BuilderSession = Depends(session_dependency)) -> dict:
    return session.validate_style_guide().model_dump(mode="json")


@router.get("/projects/{project_id}/style/export")
async def export_style(
    format: str = Query(default="css"), session: BuilderSession = Depends(session_dependency)
) -> PlainTextResponse:
    try:
        body = session.export_style_guide(format)
    except ArtifactMissingError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return _text(body, format)


# --- History -----------------------------------------------------------------

def _history_view(session: BuilderSession) -> dict:
    return {
        "index": session.history.index,
        "entries": [
            e.model_dump(mode="json", exclude={"snapshot"}) for e in session.history.entries
        ],
        "can_undo": session.history.can_undo,
        "can_redo": session.history.can_redo,
    }


@router.get("/projects/{project_id}/history")
async def get_history(session: BuilderSession = Depends(session_dependency)) -> dict:
    return _history_view(session)


@router.post("/projects/{project_id}/history/undo")
async def undo(session: BuilderSession = Depends(session_dependency)) -> dict:
    entry = session.undo()
    return {"moved": entry is not None, **_history_view(session)}


@router.post("/projects/{project_id}/history/redo")
async def redo(session: BuilderSession = Depends(session_dependency)) -> dict:
    entry = session.redo()
    return {"moved": entry is not None, **_history_view(session)}


@router.delete("/projects/{project_id}/history")
async def clear_history(session: BuilderSession = Depends(session_dependency)) -> dict:
    session.clear_history()
    return _history_view(session)


# --- Diagnostics -------------------------------------------------------------

@router.get("/projects/{project_id}/errors")
async def list_errors(
    unresolved: bool = Query(default=False), session: BuilderSession = Depends(session_dependency)
) -> List[dict]:
    errors = session.diagnostics.unresolved_errors() if unresolved else session.diagnostics.errors
    return [e.model_dump(mode="json") for e in errors]


@router.post("/projects/{project_id}/errors", status_code=status.HTTP_201_CREATED)
async def add_error(payload: ErrorCreate, session: BuilderSession = Depends(session_dependency)) -> dict:
    error = session.diagnostics.add_error(
        payload.code, payload.message, payload.severity, payload.step, payload.metadata
    )
    return error.model_dump(mode="json")


@router.post("/projects/{project_id}/errors/{error_id}/resolve")
async def resolve_error(error_id: str, session: BuilderSession = Depends(session_dependency)) -> dict:
    if not session.diagnostics.mark_error_resolved(error_id):
        raise HTTPException(status_code=404, detail="Error not found")
    return {"id": error_id, "resolved": True}


@router.delete("/projects/{project_id}/errors/{error_id}")
async def remove_error(error_id: str, session: BuilderSession = Depends(session_dependency)) -> dict:
    if not session.diagnostics.remove_error(error_id):
        raise HTTPException(status_code=404, detail="Error not found")
    return {"id": error_id, "removed": True}


@router.delete("/projects/{project_id}/errors")
async def clear_errors(session: BuilderSession = Depends(session_dependency)) -> dict:
    session.diagnostics.clear_errors()
    return {"cleared": True}


@router.get("/projects/{project_id}/warnings")
async def list_warnings(
    unacknowledged: bool = Query(default=False), session: BuilderSession = Depends(session_dependency)
) -> List[dict]:
    warnings = session.diagnostics.unacknowledged_warnings() if unacknowledged else session.diagnostics.warnings
    return [w.model_dump(mode="json") for w in warnings]


@router.post("/projects/{project_id}/warnings", status_code=status.HTTP_201_CREATED)
async def add_warning(payload: WarningCreate, session: BuilderSession = Depends(session_dependency)) -> dict:
    warning = session.diagnostics.add_warning(payload.code, payload.message, payload.step, payload.metadata)
    return warning.model_dump(mode="json")


@router.post("/projects/{project_id}/warnings/{warning_id}/acknowledge")
async def acknowledge_warning(warning_id: str, session: BuilderSession = Depends(session_dependency)) -> dict:
    if not session.diagnostics.acknowledge_warning(warning_id):
        raise HTTPException(status_code=404, detail="Warning not found")
    return {"id": warning_id, "acknowledged": True}


@router.delete("/projects/{project_id}/warnings")
async def clear_warnings(session: BuilderSession = Depends(session_dependency)) -> dict:
    session.diagnostics.clear_warnings()
    return {"cleared": True}


# --- Whole session -----------------------------------------------------------

@router.post("/projects/{project_id}/reset")
async def reset_session(
    project_id: str,
    session: BuilderSession = Depends(session_dependency),
    registry: SessionRegistry = Depends(registry_dependency),
) -> dict:
    session.reset()
    await registry.remove(project_id)
    return {"project_id": project_id, "status": "reset"}


@router.get("/projects/{project_id}/export")
async def export_session(
    format: str = Query(default="json"), session: BuilderSession = Depends(session_dependency)
) -> PlainTextResponse:
    try:
        body = session.export_data(format)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return _text(body, format)


@router.post("/projects/{project_id}/import")
async def import_session(
    project_id: str,
    payload: ImportRequest,
    session: BuilderSession = Depends(session_dependency),
    registry: SessionRegistry = Depends(registry_dependency),
) -> dict:
    if not session.import_data(payload.data):
        raise HTTPException(
            status_code=400,
            detail=[e.model_dump(mode="json") for e in session.diagnostics.errors if e.code == "IMPORT_FAILED"][-1:],
        )
    new_id = session.project_id
    if new_id != project_id:
        registry.forget(project_id)
        registry.register(session)
    return session.summary()
