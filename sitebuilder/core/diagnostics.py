from __future__ import annotations

from typing import Any, Dict, List, Optional

from sitebuilder.core.models import BuilderError, BuilderWarning, Severity, WorkflowStep
from sitebuilder.core.state import BuilderState
from sitebuilder.utils.logging import get_logger

LOGGER = get_logger(__name__)


class DiagnosticsRegistry:
    """Step-tagged errors and warnings, each dismissed independently."""

    def __init__(self, state: BuilderState) -> None:
        self._state = state

    @property
    def errors(self) -> List[BuilderError]:
        return self._state.errors

    @property
    def warnings(self) -> List[BuilderWarning]:
        return self._state.warnings

    def add_error(
        self,
        code: str,
        message: str,
        severity: Severity = "error",
        step: Optional[WorkflowStep] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> BuilderError:
        error = BuilderError(
            code=code,
            message=message,
            severity=severity,
            step=step,
            metadata=metadata or {},
        )
        self._state.errors.append(error)
        LOGGER.warning("Builder error %s (%s): %s", code, step.value if step else "-", message)
        return error

    def remove_error(self, error_id: str) -> bool:
        before = len(self._state.errors)
        self._state.errors = [e for e in self._state.errors if e.id != error_id]
        return len(self._state.errors) != before

    def mark_error_resolved(self, error_id: str) -> bool:
        for error in self._state.errors:
            if error.id == error_id:
                error.resolved = True
                return True
        return False

    def add_warning(
        self,
        code: str,
        message: str,
        step: Optional[WorkflowStep] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> BuilderWarning:
        warning = BuilderWarning(code=code, message=message, step=step, metadata=metadata or {})
        self._state.warnings.append(warning)
        LOGGER.info("Builder warning %s: %s", code, message)
        return warning

    def acknowledge_warning(self, warning_id: str) -> bool:
        for warning in self._state.warnings:
            if warning.id == warning_id:
                warning.acknowledged = True
                return True
        return False

    def clear_errors(self) -> None:
        self._state.errors = []

    def clear_warnings(self) -> None:
        self._state.warnings = []

    def unresolved_errors(self) -> List[BuilderError]:
        return [e for e in self._state.errors if not e.resolved]

    def unacknowledged_warnings(self) -> List[BuilderWarning]:
        return [w for w in self._state.warnings if not w.acknowledged]
