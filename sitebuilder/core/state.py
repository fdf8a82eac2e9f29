from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from sitebuilder.core.models import (
    BuilderError,
    BuilderWarning,
    GenerationState,
    HistoryEntry,
    Project,
    SitemapStructure,
    StyleGuide,
    Wireframe,
    WorkflowStep,
)

ArtifactKindName = Literal["sitemap", "wireframe", "style"]
ARTIFACT_KINDS: tuple[ArtifactKindName, ...] = ("sitemap", "wireframe", "style")


def _fresh_generation_states() -> Dict[str, GenerationState]:
    return {kind: GenerationState() for kind in ARTIFACT_KINDS}


class BuilderState(BaseModel):
    # Current project
    project: Optional[Project] = None

    # Artifacts
    sitemap: Optional[SitemapStructure] = None
    wireframes: Dict[str, Wireframe] = Field(default_factory=dict)  # page id -> wireframe
    style_guide: Optional[StyleGuide] = None

    # One generation state per artifact kind
    generation: Dict[str, GenerationState] = Field(default_factory=_fresh_generation_states)

    # Workflow / UI
    active_step: WorkflowStep = WorkflowStep.INITIAL
    completed_steps: List[WorkflowStep] = Field(default_factory=list)
    sidebar_collapsed: bool = False
    selected_page_id: Optional[str] = None

    # History (ephemeral)
    history: List[HistoryEntry] = Field(default_factory=list)
    history_index: int = -1

    # Persistence
    last_saved: Optional[datetime] = None
    auto_save_enabled: bool = True
    auto_save_interval: int = 30

    # Diagnostics (ephemeral)
    errors: List[BuilderError] = Field(default_factory=list)
    warnings: List[BuilderWarning] = Field(default_factory=list)

    def reset_generation_states(self) -> None:
        self.generation = _fresh_generation_states()

    def clear_artifacts(self) -> None:
        self.sitemap = None
        self.wireframes = {}
        self.style_guide = None


class StateSnapshot(BaseModel):
    """The subset of builder state exchanged with the persistence adapter.

    History, diagnostics and generation states are session-scoped and never
    part of a snapshot.
    """

    project: Project
    sitemap: Optional[SitemapStructure] = None
    wireframes: Dict[str, Wireframe] = Field(default_factory=dict)
    style_guide: Optional[StyleGuide] = None
    active_step: WorkflowStep = WorkflowStep.INITIAL
    completed_steps: List[WorkflowStep] = Field(default_factory=list)
    sidebar_collapsed: bool = False
    auto_save_enabled: bool = True
    auto_save_interval: int = 30
    last_saved: Optional[datetime] = None

    @classmethod
    def from_state(cls, state: BuilderState) -> "StateSnapshot":
        if state.project is None:
            raise ValueError("Cannot snapshot a session without a project")
        return cls(
            project=state.project.model_copy(deep=True),
            sitemap=state.sitemap.model_copy(deep=True) if state.sitemap else None,
            wireframes={k: v.model_copy(deep=True) for k, v in state.wireframes.items()},
            style_guide=state.style_guide.model_copy(deep=True) if state.style_guide else None,
            active_step=state.active_step,
            completed_steps=list(state.completed_steps),
            sidebar_collapsed=state.sidebar_collapsed,
            auto_save_enabled=state.auto_save_enabled,
            auto_save_interval=state.auto_save_interval,
            last_saved=state.last_saved,
        )

    def apply_to(self, state: BuilderState) -> None:
        state.project = self.project
        state.sitemap = self.sitemap
        state.wireframes = dict(self.wireframes)
        state.style_guide = self.style_guide
        state.active_step = self.active_step
        state.completed_steps = list(self.completed_steps)
        state.sidebar_collapsed = self.sidebar_collapsed
        state.auto_save_enabled = self.auto_save_enabled
        state.auto_save_interval = self.auto_save_interval
        state.last_saved = self.last_saved

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")
