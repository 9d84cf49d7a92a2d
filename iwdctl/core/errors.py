"""Domain-specific errors for iwdctl."""


class IwdctlError(Exception):
    """Base error for iwdctl."""


class ConfigError(IwdctlError):
    """Raised when the configuration file cannot be read."""


class ConfigValidationError(ConfigError):
    """Raised when the configuration does not conform to schema or semantics."""


class RpcError(IwdctlError):
    """Raised when a call to the daemon fails."""

    def __init__(self, name: str, message: str = "") -> None:
        self.name = name
        self.message = message
        super().__init__(f"{message} ({name})" if message else name)


class NotFoundError(IwdctlError):
    """Raised when a referenced object is absent from the object cache."""


class PreconditionError(IwdctlError):
    """Raised when a command is not applicable to the referenced object."""


class PromptCanceled(IwdctlError):
    """Raised by a passphrase prompt when the user aborts it."""


class ActivationError(IwdctlError):
    """Raised when the agent cannot be registered with the daemon."""
