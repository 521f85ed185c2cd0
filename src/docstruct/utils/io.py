"""
I/O utilities for the document structure pipeline.

Handles:
- Fragment loading from JSON files
- Fragment extraction from PDF text layers (PyMuPDF)
- JSON serialization
- Directory management and input type detection
"""

import json
import logging
from pathlib import Path
from typing import List, Union, Optional, Any
from dataclasses import dataclass, field, asdict

import numpy as np

from .layout import TextFragment, clean_text

logger = logging.getLogger(__name__)


# ============================================================================
# Source Document
# ============================================================================

@dataclass
class SourceDocument:
    """Fragments of every page plus per-page image paint counts."""
    source_file: str
    pages: List[List[TextFragment]] = field(default_factory=list)
    image_counts: List[int] = field(default_factory=list)
    # Source page number of each entry in pages; empty means 1, 2, 3, ...
    page_numbers: List[int] = field(default_factory=list)

    @property
    def num_pages(self) -> int:
        return len(self.pages)

    @property
    def source_page_numbers(self) -> List[int]:
        return self.page_numbers or list(range(1, self.num_pages + 1))

    def select_pages(self, page_numbers: List[int]) -> 'SourceDocument':
        """Keep only the given source page numbers, in the given order."""
        positions = {n: i for i, n in enumerate(self.source_page_numbers)}
        keep = [positions[n] for n in page_numbers if n in positions]
        counts = self.image_counts or [0] * self.num_pages
        return SourceDocument(
            source_file=self.source_file,
            pages=[self.pages[i] for i in keep],
            image_counts=[counts[i] for i in keep],
            page_numbers=[self.source_page_numbers[i] for i in keep]
        )


# ============================================================================
# JSON Fragment Source
# ============================================================================

def load_fragments_json(json_path: Union[str, Path]) -> SourceDocument:
    """
    Load pages of fragments from a JSON file.

    Accepted shapes:
        {"pages": [[{"text", "x", "y", "fontSize"}, ...], ...]}
        [[{...}, ...], ...]
    A page may also be an object with a "fragments" list and an optional
    "images" count.

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If the JSON doesn't describe pages of fragments
    """
    data = load_json(json_path)
    raw_pages = data.get("pages") if isinstance(data, dict) else data
    if not isinstance(raw_pages, list):
        raise ValueError(f"Expected a list of pages in {json_path}")

    document = SourceDocument(source_file=str(json_path))
    for page_index, raw_page in enumerate(raw_pages, 1):
        image_count = 0
        if isinstance(raw_page, dict):
            image_count = int(raw_page.get("images", 0) or 0)
            raw_page = raw_page.get("fragments", [])
        if not isinstance(raw_page, list):
            raise ValueError(f"Page {page_index} in {json_path} is not a list of fragments")
        try:
            fragments = [TextFragment.from_dict(item) for item in raw_page]
        except (TypeError, ValueError, AttributeError) as e:
            raise ValueError(f"Malformed fragment on page {page_index} in {json_path}: {e}")
        document.pages.append(fragments)
        document.page_numbers.append(page_index)
        document.image_counts.append(image_count)

    logger.info(f"Loaded {document.num_pages} page(s) of fragments from {json_path}")
    return document


# ============================================================================
# PDF Fragment Source
# ============================================================================

def load_pdf_fragments(
    pdf_path: Union[str, Path],
    first_page: Optional[int] = None,
    last_page: Optional[int] = None
) -> SourceDocument:
    """
    Read positioned text spans from a PDF using PyMuPDF.

    Each span becomes one fragment at its baseline origin. PyMuPDF measures
    y downward from the top, so y is flipped to make larger values higher
    on the page. Images are counted per page but never decoded.

    Args:
        pdf_path: Path to the PDF file
        first_page: First page to read (1-indexed, None = first)
        last_page: Last page to read (1-indexed, None = last)

    Raises:
        FileNotFoundError: If PDF file doesn't exist
        ImportError: If PyMuPDF is not installed
        RuntimeError: If the PDF cannot be parsed
    """
    pdf_path = Path(pdf_path)
    if not pdf_path.exists():
        raise FileNotFoundError(f"PDF file not found: {pdf_path}")

    try:
        import fitz  # PyMuPDF
    except ImportError:
        raise ImportError(
            "PyMuPDF is required for PDF input. Install with: pip install PyMuPDF"
        )

    try:
        pdf = fitz.open(str(pdf_path))
    except Exception as e:
        raise RuntimeError(f"Failed to parse PDF: {e}")

    document = SourceDocument(source_file=str(pdf_path))
    with pdf:
        start = (first_page or 1) - 1
        end = min(last_page or pdf.page_count, pdf.page_count)
        for page_index in range(start, end):
            page = pdf[page_index]
            document.pages.append(_page_fragments(page))
            document.page_numbers.append(page_index + 1)
            document.image_counts.append(len(page.get_images(full=True)))

    logger.info(f"Extracted fragments from {document.num_pages} PDF page(s): {pdf_path}")
    return document


def _page_fragments(page: Any) -> List[TextFragment]:
    """Convert the text spans of one PyMuPDF page into fragments."""
    height = page.rect.height
    fragments = []
    for block in page.get_text("dict").get("blocks", []):
        if block.get("type", 0) != 0:
            continue
        for line in block.get("lines", []):
            for span in line.get("spans", []):
                text = clean_text(span.get("text", ""))
                if not text.strip():
                    continue
                x, y = span.get("origin", span.get("bbox", (0.0, 0.0))[:2])
                fragments.append(TextFragment(
                    text=text,
                    x=float(x),
                    y=float(height - y),
                    font_size=float(span.get("size", 0.0))
                ))
    return fragments


def load_source(input_path: Union[str, Path]) -> SourceDocument:
    """Load fragments from a PDF or fragment JSON file."""
    input_type = detect_input_type(input_path)
    if input_type == "pdf":
        return load_pdf_fragments(input_path)
    if input_type == "json":
        return load_fragments_json(input_path)
    if not Path(input_path).exists():
        raise FileNotFoundError(f"Input file not found: {input_path}")
    raise ValueError(f"Unsupported input type: {input_path}")


# ============================================================================
# JSON Serialization
# ============================================================================

class EnhancedJSONEncoder(json.JSONEncoder):
    """JSON encoder that handles numpy scalars, dataclasses and paths."""

    def default(self, obj):
        if isinstance(obj, np.ndarray):
            return obj.tolist()
        if isinstance(obj, np.integer):
            return int(obj)
        if isinstance(obj, np.floating):
            return float(obj)
        if hasattr(obj, '__dataclass_fields__'):
            return asdict(obj)
        if isinstance(obj, Path):
            return str(obj)
        return super().default(obj)


def save_json(
    data: Any,
    output_path: Union[str, Path],
    indent: int = 2,
    ensure_ascii: bool = False
) -> Path:
    """
    Save data to a JSON file.

    Args:
        data: Data to serialize (dict, list, dataclass, etc.)
        output_path: Path to save the JSON file
        indent: Indentation level for pretty printing
        ensure_ascii: If True, escape non-ASCII characters

    Returns:
        Path to the saved file
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, 'w', encoding='utf-8') as f:
        json.dump(data, f, indent=indent, ensure_ascii=ensure_ascii, cls=EnhancedJSONEncoder)

    logger.debug(f"Saved JSON: {output_path}")
    return output_path


def load_json(json_path: Union[str, Path]) -> Any:
    """Load data from a JSON file."""
    json_path = Path(json_path)
    if not json_path.exists():
        raise FileNotFoundError(f"JSON file not found: {json_path}")

    with open(json_path, 'r', encoding='utf-8') as f:
        try:
            return json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in {json_path}: {e}")


# ============================================================================
# Directory Management
# ============================================================================

def ensure_dir(path: Union[str, Path]) -> Path:
    """Ensure a directory exists, creating it if necessary."""
    path = Path(path)
    path.mkdir(parents=True, exist_ok=True)
    return path


# ============================================================================
# File Type Detection
# ============================================================================

def detect_input_type(input_path: Union[str, Path]) -> str:
    """
    Detect the type of input file.

    Returns:
        One of: 'pdf', 'json', 'unknown'
    """
    input_path = Path(input_path)
    if not input_path.is_file():
        return 'unknown'

    suffix = input_path.suffix.lower()
    if suffix == '.pdf':
        return 'pdf'
    elif suffix == '.json':
        return 'json'

    return 'unknown'
