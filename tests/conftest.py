"""
Shared fixtures for the docstruct test suite.
"""

import sys
from pathlib import Path
from typing import List

import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from docstruct.utils.layout import TextFragment


def row(y: float, cells: List[str], xs: List[float], font_size: float = 11.0) -> List[TextFragment]:
    """Fragments for one visual row, one fragment per cell."""
    return [TextFragment(text, x, y, font_size) for text, x in zip(cells, xs)]


@pytest.fixture
def price_page() -> List[TextFragment]:
    """Heading, a 2-row price table and a closing prose line."""
    fragments = [TextFragment("Price List", 0, 760, 26)]
    fragments += row(700, ["Item", "Qty", "Price"], [0, 60, 120])
    fragments += row(680, ["Pen", "3", "1.50"], [0, 60, 120])
    fragments.append(TextFragment("Prices include a handling fee for every order.", 0, 640, 11))
    return fragments


@pytest.fixture
def quarterly_page() -> List[TextFragment]:
    """A 4-column table whose last row is missing one cell."""
    fragments = []
    fragments += row(700, ["Region", "Q1", "Q2", "Q3"], [0, 100, 200, 300])
    fragments += row(680, ["North", "10", "12", "15"], [0, 100, 200, 300])
    fragments += row(660, ["South", "8", "11"], [0, 100, 300])
    return fragments
