"""
Table detection module for document reconstruction.

Provides:
- Table IR data classes (Cell, Table)
- Candidate row classification (numeric / short-text bias)
- Column anchor discovery and merging
- Anchor-aligned row confirmation and grouping into tables
"""

import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional, Tuple, Dict, Any, Set

import numpy as np

from ..config import TableConfig
from .layout import Line

logger = logging.getLogger(__name__)

NUMERIC_PATTERN = re.compile(r"^[-+]?[$€£]?\d+(?:[.,]\d+)*%?$")


# ============================================================================
# Data Classes
# ============================================================================

@dataclass(frozen=True)
class Cell:
    """A single table cell."""
    text: str
    row_span: int = 1
    col_span: int = 1

    def to_dict(self) -> Dict[str, Any]:
        return {"text": self.text}


@dataclass(frozen=True)
class Table:
    """
    A reconstructed table.

    Every row holds the same number of cells and the first row is the
    header. Tables produced by the detector always have at least two rows.
    """
    rows: Tuple[Tuple[Cell, ...], ...]
    page_number: int = 1

    @classmethod
    def from_grid(cls, grid: List[List[str]], page_number: int = 1) -> 'Table':
        """Build a table from rows of strings, padding short rows with empty cells."""
        width = max((len(row) for row in grid), default=0)
        return cls(
            rows=tuple(
                tuple(Cell(text=str(t)) for t in list(row) + [""] * (width - len(row)))
                for row in grid
            ),
            page_number=page_number
        )

    @property
    def num_rows(self) -> int:
        return len(self.rows)

    @property
    def num_cols(self) -> int:
        return len(self.rows[0]) if self.rows else 0

    @property
    def grid(self) -> List[List[str]]:
        return [[cell.text for cell in row] for row in self.rows]

    @property
    def header(self) -> List[str]:
        return self.grid[0] if self.rows else []

    @property
    def body(self) -> List[List[str]]:
        return self.grid[1:]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rows": self.grid,
            "page": self.page_number
        }


@dataclass
class PageAnalysis:
    """Table detector output for one page."""
    page_number: int
    lines: List[Line] = field(default_factory=list)
    anchors: List[float] = field(default_factory=list)
    candidate_rows: List[int] = field(default_factory=list)
    table_rows: Set[int] = field(default_factory=set)
    # (index of the table's first line, table)
    tables: List[Tuple[int, Table]] = field(default_factory=list)

    @property
    def has_tables(self) -> bool:
        return bool(self.tables)


# ============================================================================
# Cell Helpers
# ============================================================================

def is_numeric(text: str) -> bool:
    """True for purely numeric cell text such as 42, 1.50, 1,200 or -3%."""
    return bool(NUMERIC_PATTERN.match(text.strip()))


def is_short(text: str, max_len: int = 3) -> bool:
    return len(text.strip()) <= max_len


# ============================================================================
# Table Detector
# ============================================================================

class TableDetector:
    """
    Finds tables among the lines of one page.

    Anchors are learned from candidate rows only, then every candidate row
    is re-read against those anchors. This keeps prose lines that merely
    start near a column position out of the tables. The numeric and
    short-text bias targets ledger style tables.
    """

    def __init__(self, config: Optional[TableConfig] = None):
        self.config = config or TableConfig()

    def detect(self, lines: List[Line], page_number: int = 1) -> PageAnalysis:
        """
        Classify rows and build tables.

        Args:
            lines: Lines of one page, top first
            page_number: Page number (1-indexed)

        Returns:
            PageAnalysis with the table row indices and Table elements
        """
        cfg = self.config
        analysis = PageAnalysis(page_number=page_number, lines=list(lines))

        candidates = [i for i, line in enumerate(lines) if self.is_candidate(line)]
        analysis.candidate_rows = candidates
        anchors = self.find_anchors([lines[i] for i in candidates])
        analysis.anchors = anchors

        if len(anchors) < cfg.min_anchors or len(candidates) < cfg.min_candidate_rows:
            logger.debug(
                f"Page {page_number}: no table "
                f"({len(candidates)} candidate rows, {len(anchors)} anchors)"
            )
            return analysis

        candidate_set = set(candidates)
        run: List[Tuple[int, List[str]]] = []
        header: Optional[Tuple[int, List[str]]] = None

        for index, line in enumerate(lines):
            status = None
            mapped: List[str] = []
            if index in candidate_set:
                mapped = self.map_to_anchors(line, anchors)
                status = self.classify_row(mapped, len(anchors))

            if status == "row":
                if not run and header is not None and header[0] == index - 1:
                    run.append(header)
                run.append((index, mapped))
                header = None
                continue

            self._close_run(run, analysis)
            run = []
            header = (index, mapped) if status == "header" and cfg.absorb_header else None

        self._close_run(run, analysis)

        logger.info(
            f"Page {page_number}: {len(analysis.tables)} table(s), "
            f"{len(analysis.table_rows)} table rows, {len(anchors)} anchors"
        )
        return analysis

    # ------------------------------------------------------------------
    # Step 1: candidate rows
    # ------------------------------------------------------------------

    def is_candidate(self, line: Line) -> bool:
        """Check whether a line looks tabular before columns are known."""
        cfg = self.config
        cells = line.cells
        if len(line) < cfg.min_fragments or len(cells) < cfg.min_cells:
            return False

        short_or_numeric = sum(
            1 for c in cells if is_numeric(c) or is_short(c, cfg.short_cell_max_len)
        )
        mean_len = sum(len(c) for c in cells) / len(cells)

        return (
            short_or_numeric >= len(cells) * cfg.candidate_short_ratio
            or mean_len < cfg.candidate_mean_len
        )

    # ------------------------------------------------------------------
    # Step 2: column anchors
    # ------------------------------------------------------------------

    def find_anchors(self, rows: List[Line]) -> List[float]:
        """Collect x anchors from candidate rows and merge near neighbours."""
        anchors: List[float] = []
        for line in rows:
            for fragment in line.sorted_fragments:
                nearest = self._nearest_index(anchors, fragment.x)
                if nearest is not None and abs(anchors[nearest] - fragment.x) <= self.config.anchor_join_distance:
                    continue
                anchors.append(fragment.x)

        return self.merge_anchors(anchors)

    def merge_anchors(self, anchors: List[float]) -> List[float]:
        """Replace the closest pair within the merge distance by its mean until none remain."""
        merged = np.sort(np.asarray(anchors, dtype=float))
        while merged.size > 1:
            gaps = np.diff(merged)
            i = int(np.argmin(gaps))
            if gaps[i] > self.config.anchor_merge_distance:
                break
            mean = float(np.mean(merged[i:i + 2]))
            merged = np.sort(np.concatenate([merged[:i], [mean], merged[i + 2:]]))
        return [float(a) for a in merged]

    @staticmethod
    def _nearest_index(values: List[float], x: float) -> Optional[int]:
        if not values:
            return None
        return min(range(len(values)), key=lambda i: abs(values[i] - x))

    # ------------------------------------------------------------------
    # Step 4: per-row confirmation
    # ------------------------------------------------------------------

    def map_to_anchors(self, line: Line, anchors: List[float]) -> List[str]:
        """Map each anchor to the nearest fragment text within the match distance."""
        fragments = line.sorted_fragments
        cells = []
        for anchor in anchors:
            best = None
            best_distance = None
            for fragment in fragments:
                distance = abs(fragment.x - anchor)
                if distance <= self.config.cell_match_distance and (
                    best_distance is None or distance < best_distance
                ):
                    best = fragment
                    best_distance = distance
            cells.append(best.text.strip() if best is not None else "")
        return cells

    def classify_row(self, mapped: List[str], anchor_count: int) -> Optional[str]:
        """
        Classify anchor-mapped cells.

        Returns:
            "row" for a confirmed table row, "header" for a row that fills
            enough columns but lacks the numeric/short-text signal, else None
        """
        cfg = self.config
        filled = [c for c in mapped if c]
        if len(filled) < max(cfg.min_filled_cells, cfg.filled_ratio * anchor_count):
            return None

        numeric = sum(1 for c in filled if is_numeric(c))
        short = sum(1 for c in filled if is_short(c, cfg.short_cell_max_len))

        if numeric >= cfg.min_numeric_cells or short >= len(filled) * cfg.confirm_short_ratio:
            return "row"
        return "header"

    # ------------------------------------------------------------------
    # Step 5: grouping
    # ------------------------------------------------------------------

    def _close_run(
        self,
        run: List[Tuple[int, List[str]]],
        analysis: PageAnalysis
    ):
        """Emit a table for a run of confirmed rows, or drop a run that is too short."""
        if not run:
            return
        if len(run) < self.config.min_table_rows:
            logger.debug(
                f"Page {analysis.page_number}: demoting lone tabular row {run[0][0]}"
            )
            return

        table = Table.from_grid([cells for _, cells in run], analysis.page_number)
        analysis.tables.append((run[0][0], table))
        analysis.table_rows.update(index for index, _ in run)


def detect_tables(
    lines: List[Line],
    page_number: int = 1,
    config: Optional[TableConfig] = None
) -> PageAnalysis:
    """Convenience wrapper around TableDetector.detect."""
    return TableDetector(config).detect(lines, page_number)
