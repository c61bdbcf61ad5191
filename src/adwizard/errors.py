from __future__ import annotations


class WizardError(Exception):
    """Base class for everything the wizard raises on purpose."""


class ConfigurationError(WizardError):
    """The generation gateway is not usable (missing key, unknown provider)."""


class ValidationError(WizardError):
    """User input was rejected before anything was sent upstream."""


class RemoteOperationError(WizardError):
    def __init__(self, operation: str, message: str) -> None:
        super().__init__(message)
        self.operation = operation


class InvalidTransitionError(WizardError):
    """An action was requested from a stage that does not offer it."""


class SharingUnsupportedError(WizardError):
    pass
