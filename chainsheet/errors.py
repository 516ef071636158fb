"""Custom exceptions for the ChainSheet engine."""
from __future__ import annotations

class SheetError(Exception):
    """Base class for sheet-related errors."""
    pass

class CycleError(SheetError):
    """Raised when a source assignment would close a cycle between columns."""
    pass

class ConfigurationError(SheetError):
    """Raised for invalid structural operations or unresolvable sources."""
    pass

class GenerationError(SheetError):
    """Raised by generation adapters when a provider call fails."""
    pass
