"""
Configuration and constants for the document structure pipeline.

This module provides:
- Global logging setup
- Line grouping and table detection thresholds
- Heading inference thresholds
- Export settings
"""

import os
from dataclasses import dataclass, field
from typing import List, Optional
import logging

# ============================================================================
# Logging Configuration
# ============================================================================

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("docstruct")


# ============================================================================
# Processing Configuration
# ============================================================================

@dataclass
class LineConfig:
    """Line grouping configuration."""
    # Max vertical distance (page units) between a fragment and a line.
    # 0 or less falls back to exact bucketing on round(y).
    y_tolerance: float = 2.0


@dataclass
class TableConfig:
    """
    Table detection thresholds.

    Tuned against the output scale of a typical PDF text layer (points).
    Recalibrate these when feeding fragments from a source with other units.
    """
    # Step 1: candidate rows
    min_fragments: int = 2
    min_cells: int = 3
    short_cell_max_len: int = 3
    candidate_short_ratio: float = 0.5
    candidate_mean_len: float = 8.0
    # Step 2: column anchors
    anchor_join_distance: float = 40.0
    anchor_merge_distance: float = 50.0
    # Step 3: page gate
    min_anchors: int = 2
    min_candidate_rows: int = 2
    # Step 4: row confirmation
    cell_match_distance: float = 60.0
    min_filled_cells: int = 2
    filled_ratio: float = 0.3
    min_numeric_cells: int = 2
    confirm_short_ratio: float = 0.5
    absorb_header: bool = True
    # Step 5: grouping
    min_table_rows: int = 2


@dataclass
class HeadingConfig:
    """Font size thresholds for heading levels 1-3."""
    h1: float = 24.0
    h2: float = 18.0
    h3: float = 14.0


@dataclass
class ExportConfig:
    """Export configuration."""
    # HTML settings
    html_title: str = "Converted Document"
    # DOCX settings
    docx_header_fill: str = "D9D9D9"
    # LaTeX settings
    latex_document_class: str = "article"
    latex_packages: List[str] = field(default_factory=lambda: [
        "inputenc", "fontenc", "geometry"
    ])
    # CSV settings
    csv_delimiter: str = ","


@dataclass
class PipelineConfig:
    """Main pipeline configuration."""
    line: LineConfig = field(default_factory=LineConfig)
    table: TableConfig = field(default_factory=TableConfig)
    heading: HeadingConfig = field(default_factory=HeadingConfig)
    export: ExportConfig = field(default_factory=ExportConfig)

    # Global settings
    max_workers: Optional[int] = None  # None or 1 = sequential
    debug_mode: bool = False


# ============================================================================
# Default Configuration Instance
# ============================================================================

def get_config() -> PipelineConfig:
    """Get the default pipeline configuration with environment overrides."""
    config = PipelineConfig()

    if os.environ.get("DOCSTRUCT_DEBUG", "").lower() == "true":
        config.debug_mode = True

    workers = os.environ.get("DOCSTRUCT_MAX_WORKERS")
    if workers:
        try:
            config.max_workers = int(workers)
        except ValueError:
            logger.warning(f"Ignoring invalid DOCSTRUCT_MAX_WORKERS: {workers!r}")

    tolerance = os.environ.get("DOCSTRUCT_LINE_TOLERANCE")
    if tolerance:
        try:
            config.line.y_tolerance = float(tolerance)
        except ValueError:
            logger.warning(f"Ignoring invalid DOCSTRUCT_LINE_TOLERANCE: {tolerance!r}")

    return config


# ============================================================================
# Output Formats
# ============================================================================

SUPPORTED_FORMATS = [
    "json", "xml", "csv", "markdown", "html", "docx", "latex", "txt", "rtf"
]


# ============================================================================
# Plain Text Projection Markers
# ============================================================================

PLAIN_TEXT_TABLE_START = "[TABLE]"
PLAIN_TEXT_TABLE_END = "[/TABLE]"
PLAIN_TEXT_PAGE_SEPARATOR = "--- Page Break ---"


# ============================================================================
# JSON Schema Version
# ============================================================================

JSON_SCHEMA_VERSION = "1.0"
