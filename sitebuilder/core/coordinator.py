"""Single-flight generation per artifact kind.

A coordinator drives one ``GenerationState`` through
idle -> generating -> success | error and, on success, writes the artifact
into the store, records history and completes the owning workflow step.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from pydantic import BaseModel

from sitebuilder.core.artifacts import ArtifactStore, check_sitemap
from sitebuilder.core.diagnostics import DiagnosticsRegistry
from sitebuilder.core.errors import GenerationServiceError
from sitebuilder.core.event_bus import EventBus
from sitebuilder.core.history import HistoryLog, capture_artifacts
from sitebuilder.core.models import (
    Artifact,
    GenerationRequest,
    GenerationResponse,
    GenerationState,
    GenerationStatus,
    HistoryAction,
    SitemapStructure,
    StyleGuide,
    Wireframe,
    WorkflowStep,
    utcnow,
)
from sitebuilder.core.state import ArtifactKindName, BuilderState
from sitebuilder.core.workflow import WorkflowStepper
from sitebuilder.generation.adapter import BaseGenerationService
from sitebuilder.utils.logging import get_logger

LOGGER = get_logger(__name__)

PROGRESS_STARTED = 0
PROGRESS_DISPATCHED = 10
PROGRESS_DONE = 100


@dataclass(frozen=True)
class ArtifactKind:
    name: ArtifactKindName
    step: WorkflowStep
    history_action: HistoryAction
    error_code: str
    artifact_type: type
    store: Callable[[ArtifactStore, GenerationRequest, Artifact], None]
    describe: Callable[[GenerationRequest, Artifact], str]
    check: Callable[[Artifact], List[str]] = lambda artifact: []


def _sitemap_problems(artifact: Artifact) -> List[str]:
    return [issue.message for issue in check_sitemap(artifact).errors if issue.severity == "error"]


def _store_sitemap(store: ArtifactStore, request: GenerationRequest, artifact: Artifact) -> None:
    store.set_sitemap(artifact)


def _store_wireframe(store: ArtifactStore, request: GenerationRequest, artifact: Artifact) -> None:
    store.set_wireframe(request.page_id, artifact)


def _store_style(store: ArtifactStore, request: GenerationRequest, artifact: Artifact) -> None:
    store.set_style_guide(artifact)


SITEMAP_KIND = ArtifactKind(
    name="sitemap",
    step=WorkflowStep.SITEMAP,
    history_action="generate-sitemap",
    error_code="SITEMAP_GENERATION_FAILED",
    artifact_type=SitemapStructure,
    store=_store_sitemap,
    describe=lambda request, artifact: f"Generated sitemap '{artifact.title}'",
    check=_sitemap_problems,
)

WIREFRAME_KIND = ArtifactKind(
    name="wireframe",
    step=WorkflowStep.WIREFRAME,
    history_action="generate-wireframe",
    error_code="WIREFRAME_GENERATION_FAILED",
    artifact_type=Wireframe,
    store=_store_wireframe,
    describe=lambda request, artifact: f"Generated wireframe for page '{request.page_id}'",
)

STYLE_KIND = ArtifactKind(
    name="style",
    step=WorkflowStep.STYLE,
    history_action="generate-style",
    error_code="STYLE_GENERATION_FAILED",
    artifact_type=StyleGuide,
    store=_store_style,
    describe=lambda request, artifact: f"Generated style guide '{artifact.name}'",
)

ARTIFACT_KIND_REGISTRY: Dict[str, ArtifactKind] = {
    kind.name: kind for kind in (SITEMAP_KIND, WIREFRAME_KIND, STYLE_KIND)
}


class GenerationOutcome(BaseModel):
    accepted: bool
    status: GenerationStatus
    error: Optional[str] = None
    reason: Optional[str] = None


class GenerationCoordinator:

    def __init__(
        self,
        kind: ArtifactKind,
        *,
        state: BuilderState,
        store: ArtifactStore,
        history: HistoryLog,
        stepper: WorkflowStepper,
        diagnostics: DiagnosticsRegistry,
        service: BaseGenerationService,
        event_bus: EventBus,
    ) -> None:
        self.kind = kind
        self._state = state
        self._store = store
        self._history = history
        self._stepper = stepper
        self._diagnostics = diagnostics
        self._service = service
        self._event_bus = event_bus
        self._lock = asyncio.Lock()

    @property
    def generation_state(self) -> GenerationState:
        return self._state.generation[self.kind.name]

    @property
    def is_generating(self) -> bool:
        return self.generation_state.status == "generating"

    def _project_id(self) -> Optional[str]:
        return self._state.project.id if self._state.project else None

    async def begin(self) -> bool:
        """Atomically claim the coordinator; False when a generation is already in flight."""
        async with self._lock:
            if self.is_generating:
                LOGGER.info("Rejected %s generation: already in flight", self.kind.name)
                return False
            self._state.generation[self.kind.name] = GenerationState(
                status="generating",
                progress=PROGRESS_STARTED,
                message=f"Generating {self.kind.name}",
                start_time=utcnow(),
            )
            return True

    async def generate(self, request: GenerationRequest, *, fresh: bool = False) -> GenerationOutcome:
        if not await self.begin():
            return GenerationOutcome(accepted=False, status="generating", reason="already_generating")
        return await self.run(request, fresh=fresh)

    async def run(self, request: GenerationRequest, *, fresh: bool = False) -> GenerationOutcome:
        """Drive a generation already claimed with ``begin()`` to its terminal state."""
        LOGGER.info("Starting %s generation (fresh=%s)", self.kind.name, fresh)
        await self._event_bus.emit(
            self._project_id(),
            f"{self.kind.name} generation started",
            event_type="generation.started",
            source=self.kind.name,
        )

        self.generation_state.progress = PROGRESS_DISPATCHED
        try:
            response = await self._service.generate_artifact(request, fresh=fresh)
            if not isinstance(response.artifact, self.kind.artifact_type):
                raise TypeError(
                    f"Expected {self.kind.artifact_type.__name__}, got {type(response.artifact).__name__}"
                )
            problems = self.kind.check(response.artifact)
            if problems:
                raise GenerationServiceError(
                    f"Generated {self.kind.name} is invalid: {'; '.join(problems)}", retryable=False
                )
        except Exception as exc:
            return await self._fail(exc)

        return await self._succeed(request, response)

    async def _succeed(self, request: GenerationRequest, response: GenerationResponse) -> GenerationOutcome:
        artifact, metadata = response.artifact, response.metadata
        confidence = metadata.confidence
        self.kind.store(self._store, request, artifact)

        gen = self.generation_state
        gen.status = "success"
        gen.progress = PROGRESS_DONE
        gen.end_time = utcnow()
        gen.confidence = confidence
        gen.message = f"{self.kind.name} generated"

        description = self.kind.describe(request, artifact)
        self._history.add_entry(
            self.kind.history_action,
            description,
            data={"kind": self.kind.name, "request": request.model_dump(mode="json")},
            snapshot=capture_artifacts(self._state),
        )
        self._stepper.complete_step(self.kind.step)

        LOGGER.info("%s (confidence=%s, %dms)", description, confidence, metadata.processing_time_ms)
        await self._event_bus.emit(
            self._project_id(),
            description,
            event_type="generation.completed",
            source=self.kind.name,
            data={"confidence": confidence, "tokens_used": metadata.tokens_used},
        )
        return GenerationOutcome(accepted=True, status="success")

    async def _fail(self, exc: Exception) -> GenerationOutcome:
        message = str(exc) or type(exc).__name__
        gen = self.generation_state
        gen.status = "error"
        gen.error = message
        gen.end_time = utcnow()
        gen.message = None

        LOGGER.error("%s generation failed: %s", self.kind.name, message, exc_info=exc)
        self._diagnostics.add_error(
            self.kind.error_code,
            message,
            step=self.kind.step,
            metadata={"kind": self.kind.name, "exception": type(exc).__name__},
        )
        await self._event_bus.emit(
            self._project_id(),
            f"{self.kind.name} generation failed: {message}",
            event_type="generation.failed",
            source=self.kind.name,
            level="error",
        )
        return GenerationOutcome(accepted=True, status="error", error=message)
