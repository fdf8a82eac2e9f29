from __future__ import annotations

from sitebuilder.core.models import WorkflowStep, utcnow
from sitebuilder.core.state import BuilderState

# sitemap, wireframe, style, review
COUNTED_STEPS = 4


class WorkflowStepper:
    """Active step pointer, completed-step set and the reachability gate."""

    def __init__(self, state: BuilderState) -> None:
        self._state = state

    @property
    def active_step(self) -> WorkflowStep:
        return self._state.active_step

    @property
    def completed_steps(self) -> list[WorkflowStep]:
        return list(self._state.completed_steps)

    def set_active_step(self, step: WorkflowStep) -> None:
        # Free navigation: callers decide whether to consult can_proceed_to_step
        step = WorkflowStep(step)
        self._state.active_step = step
        if self._state.project is not None:
            self._state.project.current_step = step

    def complete_step(self, step: WorkflowStep) -> None:
        step = WorkflowStep(step)
        if step not in self._state.completed_steps:
            self._state.completed_steps.append(step)
        self._state.active_step = step
        if self._state.project is not None:
            self._state.project.current_step = step
            self._state.project.updated_at = utcnow()
            if step is WorkflowStep.EXPORT:
                self._state.project.status = "completed"
            elif self._state.project.status == "draft":
                self._state.project.status = "in-progress"

    def can_proceed_to_step(self, step: WorkflowStep) -> bool:
        step = WorkflowStep(step)
        if step.rank > self._state.active_step.rank + 1:
            return False
        previous = step.previous
        if previous is None:
            return True
        return previous in self._state.completed_steps

    def reset_workflow(self) -> None:
        state = self._state
        state.active_step = WorkflowStep.INITIAL
        state.completed_steps = []
        state.clear_artifacts()
        state.selected_page_id = None
        state.errors = []
        state.warnings = []
        if state.project is not None:
            state.project.current_step = WorkflowStep.INITIAL

    def progress(self) -> float:
        return min(len(self._state.completed_steps) / COUNTED_STEPS * 100, 100.0)
