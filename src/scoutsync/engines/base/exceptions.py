"""Engine-specific exceptions."""


class EngineError(Exception):
    """Base exception for engine errors."""


class ConnectionError(EngineError):
    """Raised when the engine has no usable connection to its backend."""


class ConfigurationError(EngineError):
    """Raised when engine configuration is invalid."""


class UnsupportedOperationError(EngineError):
    """Raised when a backend cannot perform the requested operation."""


class CompilationError(EngineError, ValueError):
    """Raised when a request cannot be turned into a backend call.

    Compilation errors are raised synchronously, before any backend I/O.
    """


class FilterCompilationError(CompilationError):
    """Raised when a filter value cannot be expressed in the backend syntax."""


class SyncPredicateError(CompilationError):
    """Raised when a per-model sync predicate raises while being evaluated."""
