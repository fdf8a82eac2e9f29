from sitebuilder.core.diagnostics import DiagnosticsRegistry
from sitebuilder.core.models import WorkflowStep
from sitebuilder.core.state import BuilderState


def test_resolve_keeps_error_in_list():
    registry = DiagnosticsRegistry(BuilderState())
    error = registry.add_error("X", "broken", step=WorkflowStep.SITEMAP)

    assert registry.mark_error_resolved(error.id)

    assert len(registry.errors) == 1
    assert registry.errors[0].resolved is True
    assert registry.unresolved_errors() == []


def test_remove_error_is_distinct_from_resolve():
    registry = DiagnosticsRegistry(BuilderState())
    keep = registry.add_error("A", "a")
    drop = registry.add_error("B", "b")

    assert registry.remove_error(drop.id)
    assert [e.id for e in registry.errors] == [keep.id]
    assert not registry.remove_error("missing")
    assert not registry.mark_error_resolved("missing")


def test_warnings_acknowledge_and_clear():
    registry = DiagnosticsRegistry(BuilderState())
    warning = registry.add_warning("W", "heads up")
    registry.add_warning("W2", "another")

    assert registry.acknowledge_warning(warning.id)
    assert len(registry.unacknowledged_warnings()) == 1

    registry.clear_warnings()
    assert registry.warnings == []
