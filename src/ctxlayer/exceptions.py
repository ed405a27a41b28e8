"""Custom exceptions for ctxlayer."""


class CtxLayerError(Exception):
    """Base exception for all ctxlayer errors."""


class ValidationError(CtxLayerError, ValueError):
    """Malformed input rejected at the engine's call boundary."""


class ConfigError(CtxLayerError):
    """Configuration-related errors."""


class BundleError(CtxLayerError):
    """A fragment bundle could not be read or parsed."""

    def __init__(self, path: str, reason: str):
        super().__init__(f"Cannot load bundle '{path}': {reason}")
        self.path = path
        self.reason = reason
