from __future__ import annotations


class BuilderException(Exception):
    """Base class for errors raised by the builder core."""


class NoActiveProjectError(BuilderException):
    def __init__(self, operation: str) -> None:
        super().__init__(f"No active project for operation '{operation}'")
        self.operation = operation


class GenerationServiceError(BuilderException):
    """Raised by a generation service when an artifact cannot be produced."""

    def __init__(self, message: str, *, retryable: bool = True) -> None:
        super().__init__(message)
        self.retryable = retryable


class ArtifactMissingError(BuilderException):
    """An operation needs an artifact that has not been generated yet."""

    def __init__(self, artifact: str) -> None:
        super().__init__(f"No {artifact} available")
        self.artifact = artifact
