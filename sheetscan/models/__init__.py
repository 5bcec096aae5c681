"""Domain models for sheetscan.

Types shared by every stage: cell values, declared column types, schemas,
source selections, scan configuration and scan metrics.
"""

from .column_type import ColumnType
from .raw_cell import CellKind, RawCell
from .scan_config import ColumnOverride, ScanConfig
from .scan_summary import ScanSummary, SourceStat
from .schema import Column, ColumnSchema
from .source import ResolvedSource, SheetPattern, SourceSpec

__all__ = [
    # Cell / type models
    "CellKind",
    "RawCell",
    "ColumnType",
    "Column",
    "ColumnSchema",
    # Source selection
    "SheetPattern",
    "SourceSpec",
    "ResolvedSource",
    # Configuration & metrics
    "ColumnOverride",
    "ScanConfig",
    "ScanSummary",
    "SourceStat",
]
