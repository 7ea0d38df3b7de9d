from __future__ import annotations


class AppError(Exception):
    """Base error for domain/application exceptions."""


class ConfigurationError(AppError):
    """Raised when required configuration (env, connection strings) is missing or invalid."""


class UnknownStepError(ConfigurationError):
    """Raised when a migration step name is not registered."""

    def __init__(self, names: list[str]):
        self.names = names
        super().__init__(f"Unknown migration step(s): {', '.join(names)}")
