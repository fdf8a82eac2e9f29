"""Builder session: one project's state plus every operation the UI can dispatch.

A ``BuilderSession`` owns a ``BuilderState`` and the components that edit it
(artifact store, workflow stepper, history log, diagnostics and the three
generation coordinators). Components keep a reference to the same state
object, so the session always mutates it in place and never swaps it out.
"""
from __future__ import annotations

import asyncio
import json
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, Field

from sitebuilder.core.artifacts import ArtifactStore, MutationResult, iter_pages
from sitebuilder.core.coordinator import (
    ARTIFACT_KIND_REGISTRY,
    GenerationCoordinator,
    GenerationOutcome,
)
from sitebuilder.core.diagnostics import DiagnosticsRegistry
from sitebuilder.core.errors import ArtifactMissingError, NoActiveProjectError
from sitebuilder.core.event_bus import EventBus, get_event_bus
from sitebuilder.core.history import HistoryLog, capture_artifacts, restore_artifacts
from sitebuilder.core.models import (
    GenerationRequest,
    HistoryAction,
    HistoryEntry,
    Project,
    SitemapGenerationRequest,
    SitemapPage,
    SitemapStructure,
    StyleGenerationRequest,
    StyleGuide,
    Wireframe,
    WireframeGenerationOptions,
    WireframeGenerationRequest,
    WorkflowStep,
    utcnow,
)
from sitebuilder.core.state import BuilderState, StateSnapshot
from sitebuilder.core.workflow import WorkflowStepper
from sitebuilder.generation.adapter import BaseGenerationService, get_generation_service
from sitebuilder.memory.persistence import PersistenceAdapter, get_persistence
from sitebuilder.settings import Settings, get_settings
from sitebuilder.utils import exporters
from sitebuilder.utils.logging import get_logger

LOGGER = get_logger(__name__)

_UPDATABLE_PROJECT_FIELDS = {"name", "description", "website_type", "status", "version", "metadata"}


class ImportPayload(BaseModel):
    """Shape accepted by ``import_data``; validated in full before state is touched."""

    model_config = {"extra": "ignore"}

    project: Optional[Project] = None
    sitemap: Optional[SitemapStructure] = None
    wireframes: Dict[str, Wireframe] = Field(default_factory=dict)
    style_guide: Optional[StyleGuide] = None


class BuilderSession:

    def __init__(
        self,
        state: Optional[BuilderState] = None,
        *,
        persistence: Optional[PersistenceAdapter] = None,
        service: Optional[BaseGenerationService] = None,
        settings: Optional[Settings] = None,
        event_bus: Optional[EventBus] = None,
    ) -> None:
        self.settings = settings if settings is not None else get_settings()
        self.state = state if state is not None else self._fresh_state()
        self.persistence = persistence if persistence is not None else get_persistence()
        self.service = service if service is not None else get_generation_service()
        self.event_bus = event_bus if event_bus is not None else get_event_bus()

        self.store = ArtifactStore(self.state)
        self.stepper = WorkflowStepper(self.state)
        self.history = HistoryLog(self.state, max_size=self.settings.max_history_size)
        self.diagnostics = DiagnosticsRegistry(self.state)
        self.coordinators: Dict[str, GenerationCoordinator] = {
            name: GenerationCoordinator(
                kind,
                state=self.state,
                store=self.store,
                history=self.history,
                stepper=self.stepper,
                diagnostics=self.diagnostics,
                service=self.service,
                event_bus=self.event_bus,
            )
            for name, kind in ARTIFACT_KIND_REGISTRY.items()
        }
        self._auto_save_task: Optional[asyncio.Task[None]] = None

    def _fresh_state(self) -> BuilderState:
        return BuilderState(
            auto_save_enabled=self.settings.auto_save_enabled,
            auto_save_interval=self.settings.auto_save_interval,
        )

    @property
    def project(self) -> Optional[Project]:
        return self.state.project

    @property
    def project_id(self) -> Optional[str]:
        return self.state.project.id if self.state.project else None

    def _require_project(self, operation: str) -> Project:
        if self.state.project is None:
            raise NoActiveProjectError(operation)
        return self.state.project

    def _record(self, action: HistoryAction, description: str, data: Any = None) -> HistoryEntry:
        return self.history.add_entry(action, description, data, snapshot=capture_artifacts(self.state))

    def _record_if_ok(self, result: MutationResult, description: str, data: Any = None) -> MutationResult:
        if result.ok:
            self._record("update", description, data)
        return result

    # ---------------------------------------------------------------- projects

    def create_project(
        self, name: str, description: Optional[str] = None, website_type: Optional[str] = None
    ) -> Project:
        state = self.state
        project = Project(name=name, description=description, website_type=website_type)
        state.project = project
        state.active_step = WorkflowStep.INITIAL
        state.completed_steps = []
        state.clear_artifacts()
        state.reset_generation_states()
        state.selected_page_id = None
        self.diagnostics.clear_errors()
        self.diagnostics.clear_warnings()
        self.history.clear()

        self._record("create", f"Created project: {name}")
        LOGGER.info("Created project %s (%s)", project.id, name)
        return project

    def update_project(self, **updates: Any) -> Project:
        project = self._require_project("update_project")
        applied = {k: v for k, v in updates.items() if k in _UPDATABLE_PROJECT_FIELDS}
        for key, value in applied.items():
            setattr(project, key, value)
        project.updated_at = utcnow()
        self._record("update", "Updated project", applied)
        return project

    async def load_project(self, project_id: str) -> Optional[Project]:
        snapshot = await self.persistence.load(project_id)
        if snapshot is None:
            LOGGER.info("Project %s not found in storage", project_id)
            return None

        self._cancel_auto_save()
        self._replace_state(self._fresh_state())
        snapshot.apply_to(self.state)
        self._record("update", f"Loaded project: {snapshot.project.name}")
        LOGGER.info("Loaded project %s", project_id)
        return self.state.project

    async def load_from_storage(self) -> Optional[Project]:
        project = self._require_project("load_from_storage")
        return await self.load_project(project.id)

    async def delete_project(self, project_id: str) -> bool:
        deleted = await self.persistence.delete(project_id)
        if self.project_id == project_id:
            self.reset()
        elif self.state.project is not None:
            self._record("update", f"Deleted project: {project_id}")
        LOGGER.info("Deleted project %s (found=%s)", project_id, deleted)
        return deleted

    # ---------------------------------------------------------------- workflow

    def set_active_step(self, step: WorkflowStep) -> None:
        self.stepper.set_active_step(step)

    def complete_step(self, step: WorkflowStep) -> None:
        self.stepper.complete_step(step)

    def can_proceed_to_step(self, step: WorkflowStep) -> bool:
        return self.stepper.can_proceed_to_step(step)

    def reset_workflow(self) -> None:
        self.stepper.reset_workflow()

    def select_page(self, page_id: Optional[str]) -> MutationResult:
        if page_id is not None and self.store.find_page(page_id) is None:
            return MutationResult.failure("not_found", page_id, f"Page '{page_id}' not found")
        self.state.selected_page_id = page_id
        return MutationResult.success(page_id)

    def set_sidebar_collapsed(self, collapsed: bool) -> None:
        self.state.sidebar_collapsed = collapsed

    # ---------------------------------------------------------------- sitemap

    async def generate_sitemap(self, request: SitemapGenerationRequest, *, fresh: bool = False) -> GenerationOutcome:
        return await self.coordinators["sitemap"].generate(request, fresh=fresh)

    async def regenerate_sitemap(self) -> GenerationOutcome:
        return await self._regenerate("sitemap")

    def validate_sitemap(self):
        return self.store.validate_sitemap()

    def update_sitemap_page(self, page_id: str, updates: Mapping[str, Any]) -> MutationResult:
        result = self.store.update_sitemap_page(page_id, updates)
        return self._record_if_ok(result, f"Updated page: {page_id}", dict(updates))

    def add_page(self, parent_id: Optional[str] = None, **fields: Any) -> MutationResult:
        result = self.store.add_page(parent_id, **fields)
        return self._record_if_ok(result, f"Added page: {result.target_id}", {"parent_id": parent_id})

    def remove_page(self, page_id: str) -> MutationResult:
        result = self.store.remove_page(page_id)
        if result.ok and self.state.selected_page_id in result.affected_ids:
            self.state.selected_page_id = None
        return self._record_if_ok(result, f"Removed page: {page_id}", {"removed": result.affected_ids})

    def move_page(
        self, page_id: str, new_parent_id: Optional[str] = None, new_order: Optional[int] = None
    ) -> MutationResult:
        result = self.store.move_page(page_id, new_parent_id, new_order)
        return self._record_if_ok(
            result, f"Moved page: {page_id}", {"new_parent_id": new_parent_id, "new_order": new_order}
        )

    def export_sitemap(self, fmt: str, *, base_url: str = "") -> str:
        if self.state.sitemap is None:
            raise ArtifactMissingError("sitemap")
        return exporters.export_sitemap(self.state.sitemap, fmt, base_url=base_url)

    # ------------------------------------------------------------- wireframes

    def wireframe_request(
        self, page: SitemapPage, options: Optional[WireframeGenerationOptions] = None
    ) -> WireframeGenerationRequest:
        return WireframeGenerationRequest(
            page_id=page.id,
            page_title=page.title,
            page_path=page.path,
            page_description=page.description,
            site_title=self.state.sitemap.title if self.state.sitemap else None,
            options=options or WireframeGenerationOptions(),
        )

    async def generate_wireframe(
        self, request: WireframeGenerationRequest, *, fresh: bool = False
    ) -> GenerationOutcome:
        return await self.coordinators["wireframe"].generate(request, fresh=fresh)

    async def generate_wireframe_for_page(
        self, page_id: str, options: Optional[WireframeGenerationOptions] = None
    ) -> GenerationOutcome:
        page = self.store.find_page(page_id)
        if page is None:
            return GenerationOutcome(
                accepted=False, status=self.state.generation["wireframe"].status, reason="page_not_found"
            )
        return await self.generate_wireframe(self.wireframe_request(page, options))

    async def regenerate_wireframe(self, page_id: str) -> GenerationOutcome:
        return await self._regenerate("wireframe", page_id)

    async def generate_all_wireframes(
        self, options: Optional[WireframeGenerationOptions] = None
    ) -> Dict[str, GenerationOutcome]:
        """Generate a wireframe for every root page, one after another."""
        if self.state.sitemap is None:
            return {}
        outcomes: Dict[str, GenerationOutcome] = {}
        for page in list(self.state.sitemap.pages):
            outcomes[page.id] = await self.generate_wireframe(self.wireframe_request(page, options))
        return outcomes

    def update_wireframe_component(
        self, page_id: str, component_id: str, updates: Mapping[str, Any]
    ) -> MutationResult:
        result = self.store.update_wireframe_component(page_id, component_id, updates)
        return self._record_if_ok(result, f"Updated component {component_id} on page {page_id}", dict(updates))

    def delete_wireframe(self, page_id: str) -> MutationResult:
        return self._record_if_ok(self.store.delete_wireframe(page_id), f"Deleted wireframe: {page_id}")

    def validate_wireframe(self, page_id: str):
        return self.store.validate_wireframe(page_id)

    # ------------------------------------------------------------------ style

    async def generate_style(self, request: StyleGenerationRequest, *, fresh: bool = False) -> GenerationOutcome:
        return await self.coordinators["style"].generate(request, fresh=fresh)

    async def regenerate_style(self) -> GenerationOutcome:
        return await self._regenerate("style")

    def update_style_token(self, token: str, *args: Any) -> MutationResult:
        """Dispatch a design-token edit by name (``color``, ``typography``, ``spacing`` ...)."""
        handlers = {
            "brand_guidelines": self.store.update_brand_guidelines,
            "design_style": self.store.update_design_style,
            "color": self.store.update_color,
            "typography": self.store.update_typography,
            "spacing": self.store.update_spacing,
            "border_radius": self.store.update_border_radius,
            "shadow": self.store.update_shadow,
            "component_style": self.store.update_component_style,
        }
        handler = handlers.get(token)
        if handler is None:
            return MutationResult.failure("invalid_target", token, f"Unknown style token '{token}'")
        return self._record_if_ok(handler(*args), f"Updated style {token}")

    def validate_style_guide(self):
        return self.store.validate_style_guide()

    def export_style_guide(self, fmt: str) -> str:
        if self.state.style_guide is None:
            raise ArtifactMissingError("style guide")
        return exporters.export_style_guide(self.state.style_guide, fmt)

    # ----------------------------------------------------------- regeneration

    def regeneration_request(self, kind: str, page_id: Optional[str] = None) -> Optional[GenerationRequest]:
        """Rebuild a request from the current project and artifacts.

        Returns None (and registers a REGENERATE_UNAVAILABLE warning) when the
        context needed for that kind is missing.
        """
        state = self.state
        message = None
        request: Optional[GenerationRequest] = None
        if kind == "sitemap":
            if state.project is None:
                message = "No project to derive a sitemap prompt from"
            else:
                request = SitemapGenerationRequest(
                    prompt=state.project.description or state.project.name,
                    website_type=state.project.website_type or (state.sitemap.website_type if state.sitemap else None),
                )
        elif kind == "wireframe":
            page = self.store.find_page(page_id) if page_id else None
            if page is None:
                message = f"Page '{page_id}' not found"
            else:
                request = self.wireframe_request(page)
        elif kind == "style":
            guide = state.style_guide
            if guide is None or guide.brand_guidelines is None:
                message = "No brand guidelines to regenerate the style guide from"
            else:
                request = StyleGenerationRequest(
                    brand_guidelines=guide.brand_guidelines,
                    design_style=guide.design_style or "modern",
                )
        else:
            raise ValueError(f"Unknown artifact kind '{kind}'")

        if request is None:
            step = ARTIFACT_KIND_REGISTRY[kind].step
            self.diagnostics.add_warning("REGENERATE_UNAVAILABLE", message, step=step, metadata={"kind": kind})
        return request

    async def _regenerate(self, kind: str, page_id: Optional[str] = None) -> GenerationOutcome:
        request = self.regeneration_request(kind, page_id)
        if request is None:
            return GenerationOutcome(
                accepted=False,
                status=self.state.generation[kind].status,
                reason="missing_context",
            )
        return await self.coordinators[kind].generate(request, fresh=True)

    # ---------------------------------------------------------------- history

    def undo(self) -> Optional[HistoryEntry]:
        entry = self.history.undo()
        if entry is not None and entry.snapshot is not None:
            restore_artifacts(self.state, entry.snapshot)
        return entry

    def redo(self) -> Optional[HistoryEntry]:
        entry = self.history.redo()
        if entry is not None and entry.snapshot is not None:
            restore_artifacts(self.state, entry.snapshot)
        return entry

    def clear_history(self) -> None:
        self.history.clear()

    # ------------------------------------------------------------ persistence

    async def save_project(self, *, record_history: bool = True) -> StateSnapshot:
        self._require_project("save_project")
        self.state.last_saved = utcnow()
        snapshot = StateSnapshot.from_state(self.state)
        await self.persistence.save(snapshot)
        if record_history:
            self._record("update", "Project saved")
        LOGGER.info("Saved project %s", snapshot.project.id)
        return snapshot

    async def enable_auto_save(self, enabled: bool) -> None:
        self.state.auto_save_enabled = enabled
        if enabled:
            self._start_auto_save()
        else:
            self._cancel_auto_save()

    async def set_auto_save_interval(self, interval: int) -> None:
        if interval < 1:
            raise ValueError("auto_save_interval must be at least 1 second")
        self.state.auto_save_interval = interval
        if self.state.auto_save_enabled and self.auto_save_running:
            # restart so the new interval applies to the next tick
            self._cancel_auto_save()
            self._start_auto_save()

    @property
    def auto_save_running(self) -> bool:
        return self._auto_save_task is not None and not self._auto_save_task.done()

    def _start_auto_save(self) -> None:
        if self.auto_save_running:
            return
        self._auto_save_task = asyncio.create_task(self._auto_save_loop())

    def _cancel_auto_save(self) -> None:
        if self._auto_save_task is not None and not self._auto_save_task.done():
            self._auto_save_task.cancel()
        self._auto_save_task = None

    async def _auto_save_loop(self) -> None:
        while self.state.auto_save_enabled:
            await asyncio.sleep(self.state.auto_save_interval)
            if self.state.project is None:
                continue
            try:
                await self.save_project(record_history=False)
            except Exception as exc:
                LOGGER.exception("Auto-save failed for project %s", self.project_id)
                self.diagnostics.add_warning("AUTOSAVE_FAILED", f"Auto-save failed: {exc}")

    async def shutdown(self) -> None:
        task = self._auto_save_task
        self._cancel_auto_save()
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass

    # ---------------------------------------------------------------- session

    def _replace_state(self, fresh: BuilderState) -> None:
        for name in BuilderState.model_fields:
            setattr(self.state, name, getattr(fresh, name))

    def reset(self) -> None:
        self._cancel_auto_save()
        self._replace_state(self._fresh_state())
        LOGGER.info("Session reset")

    def export_data(self, fmt: str = "json") -> str:
        return exporters.export_session(
            fmt,
            project=self.state.project,
            sitemap=self.state.sitemap,
            wireframes=self.state.wireframes,
            style_guide=self.state.style_guide,
        )

    def import_data(self, text: str) -> bool:
        try:
            raw = json.loads(text)
            if not isinstance(raw, dict):
                raise ValueError("Import payload must be a JSON object")
            payload = ImportPayload.model_validate(raw)
            if payload.project is None:
                raise ValueError("Import payload has no project")
        except ValueError as exc:
            LOGGER.warning("Import rejected: %s", exc)
            self.diagnostics.add_error("IMPORT_FAILED", "Failed to import project data", metadata={"detail": str(exc)})
            return False

        state = self.state
        state.project = payload.project
        state.sitemap = None
        state.wireframes = dict(payload.wireframes)
        state.style_guide = payload.style_guide
        if payload.sitemap is not None:
            self.store.set_sitemap(payload.sitemap)
        self._record("update", "Project data imported")
        return True

    def summary(self) -> Dict[str, Any]:
        state = self.state
        return {
            "project": state.project.model_dump(mode="json") if state.project else None,
            "active_step": state.active_step.value,
            "completed_steps": [s.value for s in state.completed_steps],
            "progress": self.stepper.progress(),
            "generation": {k: v.model_dump(mode="json") for k, v in state.generation.items()},
            "page_count": sum(1 for _ in iter_pages(state.sitemap.pages)) if state.sitemap else 0,
            "wireframe_count": len(state.wireframes),
            "has_style_guide": state.style_guide is not None,
            "selected_page_id": state.selected_page_id,
            "sidebar_collapsed": state.sidebar_collapsed,
            "history_index": state.history_index,
            "history_size": len(state.history),
            "can_undo": self.history.can_undo,
            "can_redo": self.history.can_redo,
            "unresolved_errors": len(self.diagnostics.unresolved_errors()),
            "last_saved": state.last_saved.isoformat() if state.last_saved else None,
            "auto_save_enabled": state.auto_save_enabled,
            "auto_save_interval": state.auto_save_interval,
        }


class SessionRegistry:
    """Live sessions keyed by project id."""

    def __init__(self, **session_kwargs: Any) -> None:
        self._sessions: Dict[str, BuilderSession] = {}
        self._session_kwargs = session_kwargs

    def new_session(self) -> BuilderSession:
        return BuilderSession(**self._session_kwargs)

    def register(self, session: BuilderSession) -> BuilderSession:
        project = session._require_project("register")
        self._sessions[project.id] = session
        return session

    def get(self, project_id: str) -> Optional[BuilderSession]:
        return self._sessions.get(project_id)

    async def get_or_load(self, project_id: str) -> Optional[BuilderSession]:
        session = self._sessions.get(project_id)
        if session is not None:
            return session
        session = self.new_session()
        if await session.load_project(project_id) is None:
            return None
        return self.register(session)

    async def remove(self, project_id: str) -> Optional[BuilderSession]:
        session = self._sessions.pop(project_id, None)
        if session is not None:
            await session.shutdown()
        return session

    def forget(self, project_id: str) -> Optional[BuilderSession]:
        return self._sessions.pop(project_id, None)

    def project_ids(self) -> List[str]:
        return list(self._sessions)

    async def shutdown(self) -> None:
        for session in list(self._sessions.values()):
            await session.shutdown()
        self._sessions.clear()


_registry: Optional[SessionRegistry] = None


def get_session_registry() -> SessionRegistry:
    global _registry
    if _registry is None:
        _registry = SessionRegistry()
    return _registry


def reset_session_registry(registry: Optional[SessionRegistry] = None) -> None:
    global _registry
    _registry = registry
