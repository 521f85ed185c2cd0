"""
Line grouping module for document reconstruction.

Provides:
- Text fragment data model (one positioned glyph run)
- Line data model (fragments sharing one baseline)
- Line grouping with a tolerance band or exact y bucketing
- Top-to-bottom reading order of lines
"""

import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional, Dict, Any, Iterable

from ..config import LineConfig

logger = logging.getLogger(__name__)

# Characters XML 1.0 cannot carry (tab, newline and carriage return are allowed)
XML_ILLEGAL_CHARS = re.compile("[\x00-\x08\x0b\x0c\x0e-\x1f\ufffe\uffff\ud800-\udfff]")


def clean_text(text: str) -> str:
    """Replace control characters such as form feeds with spaces."""
    return XML_ILLEGAL_CHARS.sub(" ", text)


# ============================================================================
# Data Classes
# ============================================================================

@dataclass(frozen=True)
class TextFragment:
    """A run of text at a known position, in page units (origin bottom-left)."""
    text: str
    x: float
    y: float
    font_size: float = 0.0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TextFragment':
        """Build a fragment from a dict using either fontSize or font_size."""
        font_size = data.get("fontSize", data.get("font_size", 0.0))
        return cls(
            text=clean_text(str(data.get("text", ""))),
            x=float(data.get("x", 0.0)),
            y=float(data.get("y", 0.0)),
            font_size=float(font_size or 0.0)
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "x": self.x,
            "y": self.y,
            "fontSize": self.font_size
        }


@dataclass
class Line:
    """Fragments judged to share one vertical text row."""
    fragments: List[TextFragment] = field(default_factory=list)

    @property
    def y(self) -> float:
        if not self.fragments:
            return 0.0
        return sum(f.y for f in self.fragments) / len(self.fragments)

    @property
    def font_size(self) -> float:
        return max((f.font_size for f in self.fragments), default=0.0)

    @property
    def sorted_fragments(self) -> List[TextFragment]:
        return sorted(self.fragments, key=lambda f: f.x)

    @property
    def cells(self) -> List[str]:
        return [clean_text(f.text).strip() for f in self.sorted_fragments]

    @property
    def text(self) -> str:
        return " ".join(c for c in self.cells if c)

    def __len__(self) -> int:
        return len(self.fragments)


# ============================================================================
# Line Grouper
# ============================================================================

class LineGrouper:
    """
    Clusters the fragments of one page into lines, top of page first.

    With a positive ``y_tolerance`` each fragment joins the nearest open
    line whose mean baseline is within the tolerance, opening a new line
    only when none qualifies. A tolerance of 0 or less buckets fragments
    on ``round(y)`` instead, which splits lines on sub-unit jitter.
    """

    def __init__(self, config: Optional[LineConfig] = None):
        self.config = config or LineConfig()

    def group(self, fragments: Iterable[TextFragment]) -> List[Line]:
        """
        Group fragments into lines.

        Args:
            fragments: Unordered fragments of a single page

        Returns:
            Lines ordered by descending y, each with fragments sorted by x
        """
        ordered = sorted(fragments, key=lambda f: (-f.y, f.x))
        if not ordered:
            return []

        if self.config.y_tolerance > 0:
            lines = self._group_with_tolerance(ordered, self.config.y_tolerance)
        else:
            lines = self._group_exact(ordered)

        for line in lines:
            line.fragments.sort(key=lambda f: f.x)
        lines.sort(key=lambda l: -l.y)

        logger.debug(f"Grouped {len(ordered)} fragments into {len(lines)} lines")
        return lines

    def _group_exact(self, fragments: List[TextFragment]) -> List[Line]:
        """Bucket fragments whose rounded y is identical."""
        buckets: Dict[int, Line] = {}
        for fragment in fragments:
            key = int(round(fragment.y))
            buckets.setdefault(key, Line()).fragments.append(fragment)
        return list(buckets.values())

    def _group_with_tolerance(
        self,
        fragments: List[TextFragment],
        tolerance: float
    ) -> List[Line]:
        """Assign each fragment to the nearest line within the tolerance."""
        lines: List[Line] = []
        for fragment in fragments:
            best = None
            best_distance = None
            for line in lines:
                distance = abs(line.y - fragment.y)
                if distance <= tolerance and (best_distance is None or distance < best_distance):
                    best = line
                    best_distance = distance
            if best is None:
                best = Line()
                lines.append(best)
            best.fragments.append(fragment)
        return lines


def group_lines(
    fragments: Iterable[TextFragment],
    config: Optional[LineConfig] = None
) -> List[Line]:
    """Convenience wrapper around LineGrouper.group."""
    return LineGrouper(config).group(fragments)
