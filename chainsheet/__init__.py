from .errors import ConfigurationError, CycleError, GenerationError, SheetError
from .executor import ChainExecutor
from .llm_client import GenerationClient
from .models import Cell, CellStatus, ColumnHeader, Row
from .settings import ProviderType, Settings, load_settings
from .sheet import Sheet

__all__ = [
    "Cell",
    "CellStatus",
    "ChainExecutor",
    "ColumnHeader",
    "ConfigurationError",
    "CycleError",
    "GenerationClient",
    "GenerationError",
    "ProviderType",
    "Row",
    "Settings",
    "Sheet",
    "SheetError",
    "load_settings",
]
