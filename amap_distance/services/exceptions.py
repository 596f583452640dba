from __future__ import annotations

from typing import Optional


class DistanceError(Exception):
    """Per-record failure raised while computing one distance."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidInputError(DistanceError):
    pass


class ProviderError(DistanceError):
    def __init__(
        self,
        message: str,
        *,
        info: Optional[str] = None,
        infocode: Optional[str] = None,
        status: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.info = info
        self.infocode = infocode
        self.status = status


class CitycodeResolutionError(DistanceError):
    pass


class TransportError(DistanceError):
    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RunCancelled(Exception):
    """Raised at a checkpoint once the run's cancellation token is set."""


class PipelineError(Exception):
    """Run-level failure that aborts the whole run."""

    def __init__(self, message: str, status_code: int = 500) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message


class ConfigurationError(PipelineError):
    def __init__(self, message: str, status_code: int = 422) -> None:
        super().__init__(message, status_code=status_code)


class TableNotFoundError(PipelineError):
    def __init__(self, message: str, status_code: int = 404) -> None:
        super().__init__(message, status_code=status_code)
