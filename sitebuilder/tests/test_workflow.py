from sitebuilder.core.models import Project, WorkflowStep
from sitebuilder.core.state import BuilderState
from sitebuilder.core.workflow import WorkflowStepper

from conftest import build_sitemap


def test_complete_step_is_idempotent():
    state = BuilderState()
    stepper = WorkflowStepper(state)
    stepper.complete_step(WorkflowStep.SITEMAP)
    stepper.complete_step(WorkflowStep.SITEMAP)
    assert state.completed_steps.count(WorkflowStep.SITEMAP) == 1
    assert state.active_step is WorkflowStep.SITEMAP


def test_style_gated_on_wireframe_completion():
    state = BuilderState()
    stepper = WorkflowStepper(state)
    stepper.set_active_step(WorkflowStep.WIREFRAME)
    assert not stepper.can_proceed_to_step(WorkflowStep.STYLE)

    # sitemap was never completed; only wireframe matters for style
    stepper.complete_step(WorkflowStep.WIREFRAME)
    assert stepper.can_proceed_to_step(WorkflowStep.STYLE)


def test_cannot_skip_ahead():
    stepper = WorkflowStepper(BuilderState())
    assert stepper.can_proceed_to_step(WorkflowStep.INITIAL)
    assert not stepper.can_proceed_to_step(WorkflowStep.SITEMAP)
    assert not stepper.can_proceed_to_step(WorkflowStep.EXPORT)


def test_complete_step_moves_project_status():
    state = BuilderState(project=Project(name="Acme"))
    stepper = WorkflowStepper(state)
    stepper.complete_step(WorkflowStep.SITEMAP)
    assert state.project.status == "in-progress"
    assert state.project.current_step is WorkflowStep.SITEMAP

    stepper.complete_step(WorkflowStep.EXPORT)
    assert state.project.status == "completed"


def test_reset_workflow_clears_artifacts_and_progress():
    state = BuilderState(project=Project(name="Acme"), sitemap=build_sitemap(), selected_page_id="home")
    stepper = WorkflowStepper(state)
    stepper.complete_step(WorkflowStep.SITEMAP)
    assert stepper.progress() == 25.0

    stepper.reset_workflow()
    assert state.active_step is WorkflowStep.INITIAL
    assert state.completed_steps == []
    assert state.sitemap is None
    assert state.selected_page_id is None
    assert stepper.progress() == 0.0
