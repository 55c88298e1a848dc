from __future__ import annotations


class StudioError(Exception):
    """Base class for failures reported back to the user."""

    kind = "error"
    status_code = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_payload(self) -> dict[str, str]:
        return {"error": self.message, "kind": self.kind}


class ValidationError(StudioError):
    """Required input is missing."""

    kind = "validation"


class TemplateNotFoundError(ValidationError):
    pass


class ConfigurationError(ValidationError):
    """No API key configured for the selected service."""

    kind = "configuration"


class UnsupportedInputError(StudioError):
    kind = "unsupported_input"
    status_code = 415


class OperationInProgressError(StudioError):
    kind = "in_progress"
    status_code = 409


class ExternalServiceError(StudioError):
    """The prompt service call failed or returned output we cannot use."""

    kind = "external_service"
    status_code = 502


class AnalysisError(ExternalServiceError):
    pass
