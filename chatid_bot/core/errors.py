from __future__ import annotations


class CoreError(Exception):
    pass


class CommandRegistrationError(CoreError, ValueError):
    pass


class ConfigurationError(CoreError):
    pass
