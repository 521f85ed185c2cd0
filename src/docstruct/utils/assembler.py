"""
Document assembler module for document reconstruction.

Provides:
- Document IR data model (Paragraph, ImageRef, DocumentIR)
- Shared heading level policy
- Pipeline orchestration (fragments -> lines -> tables -> IR)
- Plain-text projection and metrics
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import List, Optional, Dict, Any, Union, Sequence, Tuple

from ..config import (
    PipelineConfig,
    HeadingConfig,
    PLAIN_TEXT_TABLE_START,
    PLAIN_TEXT_TABLE_END,
    PLAIN_TEXT_PAGE_SEPARATOR,
    JSON_SCHEMA_VERSION,
)
from .layout import LineGrouper, TextFragment
from .tables import TableDetector, Table, PageAnalysis

logger = logging.getLogger(__name__)


# ============================================================================
# Data Classes
# ============================================================================

def compact_number(value: float) -> Union[int, float]:
    """Return whole numbers as int so 26.0 serializes as 26."""
    value = float(value)
    return int(value) if value.is_integer() else value


@dataclass(frozen=True)
class Paragraph:
    """A line of prose; font_size is the largest size seen on the line."""
    text: str
    font_size: float
    page_number: int = 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "fontSize": compact_number(self.font_size),
            "page": self.page_number
        }


@dataclass(frozen=True)
class ImageRef:
    """Decoded image content. Declared for emitters; never populated."""
    data: bytes
    width: int
    height: int
    page_number: int


Element = Union[Paragraph, Table]


@dataclass(frozen=True)
class DocumentIR:
    """Reconstructed document: ordered elements plus a plain-text fallback."""
    elements: Tuple[Element, ...] = ()
    plain_text: str = ""
    images: Tuple[ImageRef, ...] = ()

    @property
    def paragraphs(self) -> List[Paragraph]:
        return [e for e in self.elements if isinstance(e, Paragraph)]

    @property
    def tables(self) -> List[Table]:
        return [e for e in self.elements if isinstance(e, Table)]

    @property
    def is_empty(self) -> bool:
        return not self.elements

    def to_dict(self) -> Dict[str, Any]:
        elements = []
        for element in self.elements:
            if isinstance(element, Table):
                elements.append({"type": "table", **element.to_dict()})
            else:
                elements.append({"type": "paragraph", **element.to_dict()})
        return {
            "schema_version": JSON_SCHEMA_VERSION,
            "elements": elements,
            "images": [],
            "plainText": self.plain_text
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DocumentIR':
        """Rebuild a document from the dict produced by to_dict."""
        elements: List[Element] = []
        for item in data.get("elements", []):
            if item.get("type") == "table":
                elements.append(Table.from_grid(item.get("rows", []), int(item.get("page", 1))))
            else:
                elements.append(Paragraph(
                    text=item.get("text", ""),
                    font_size=float(item.get("fontSize", 0.0)),
                    page_number=int(item.get("page", 1))
                ))
        return cls(elements=tuple(elements), plain_text=data.get("plainText", ""))


@dataclass
class DocumentMetrics:
    """Metrics about document processing."""
    pages_processed: int = 0
    empty_pages: int = 0
    paragraphs_total: int = 0
    headings_total: int = 0
    tables_total: int = 0
    table_rows_total: int = 0
    images_detected: int = 0
    processing_time_seconds: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pages_processed": self.pages_processed,
            "empty_pages": self.empty_pages,
            "paragraphs": {
                "total": self.paragraphs_total,
                "headings": self.headings_total
            },
            "tables": {
                "total": self.tables_total,
                "rows": self.table_rows_total
            },
            "images_detected": self.images_detected,
            "processing_time_seconds": round(self.processing_time_seconds, 2)
        }


# ============================================================================
# Heading Policy
# ============================================================================

def heading_level(font_size: float, config: Optional[HeadingConfig] = None) -> int:
    """
    Map a font size to a heading level.

    Returns:
        1, 2 or 3 for headings, 0 for body text
    """
    config = config or HeadingConfig()
    if font_size >= config.h1:
        return 1
    if font_size >= config.h2:
        return 2
    if font_size >= config.h3:
        return 3
    return 0


# ============================================================================
# Document Assembler
# ============================================================================

class DocumentAssembler:
    """
    Orchestrates the reconstruction pipeline.

    Coordinates:
    - Line grouping
    - Table detection
    - IR assembly and plain-text projection
    """

    def __init__(self, config: Optional[PipelineConfig] = None):
        self.config = config or PipelineConfig()
        self.line_grouper = LineGrouper(self.config.line)
        self.table_detector = TableDetector(self.config.table)

    def process_page(
        self,
        fragments: Sequence[TextFragment],
        page_number: int = 1
    ) -> PageAnalysis:
        """
        Group and classify the fragments of a single page.

        Args:
            fragments: All fragments of the page, in any order
            page_number: Page number (1-indexed)

        Returns:
            PageAnalysis with lines, table rows and tables
        """
        lines = self.line_grouper.group(fragments)
        return self.table_detector.detect(lines, page_number)

    def process_document(
        self,
        pages: Sequence[Sequence[TextFragment]],
        image_counts: Optional[Sequence[int]] = None,
        page_numbers: Optional[Sequence[int]] = None
    ) -> DocumentIR:
        """
        Build the Document IR for a whole document.

        Args:
            pages: One fragment list per page, in page order
            image_counts: Optional image paint count per page (metrics only)
            page_numbers: Source page number of each entry in pages
                (default: 1, 2, 3, ...)

        Returns:
            DocumentIR with elements in reading order
        """
        document, _ = self.process_document_with_metrics(pages, image_counts, page_numbers)
        return document

    def process_document_with_metrics(
        self,
        pages: Sequence[Sequence[TextFragment]],
        image_counts: Optional[Sequence[int]] = None,
        page_numbers: Optional[Sequence[int]] = None
    ) -> Tuple[DocumentIR, DocumentMetrics]:
        """Build the Document IR and the metrics of this run."""
        start_time = time.time()
        if page_numbers is None:
            page_numbers = range(1, len(pages) + 1)
        if len(page_numbers) != len(pages):
            raise ValueError(
                f"Got {len(page_numbers)} page numbers for {len(pages)} pages"
            )
        numbered = list(zip(page_numbers, pages))
        workers = self.config.max_workers or 1

        if workers > 1 and len(numbered) > 1:
            # map() yields results in submission order
            with ThreadPoolExecutor(max_workers=workers) as executor:
                analyses = list(executor.map(lambda p: self.process_page(p[1], p[0]), numbered))
        else:
            analyses = [self.process_page(fragments, n) for n, fragments in numbered]

        elements: List[Element] = []
        page_texts: List[str] = []
        for analysis in analyses:
            page_elements = self.build_elements(analysis)
            elements.extend(page_elements)
            page_texts.append(self.build_plain_text(page_elements))

        separator = f"\n\n{PLAIN_TEXT_PAGE_SEPARATOR}\n\n"
        document = DocumentIR(
            elements=tuple(elements),
            plain_text=separator.join(page_texts)
        )

        metrics = self._calculate_metrics(
            document, analyses, image_counts, time.time() - start_time
        )
        logger.info(
            f"Built document IR: {len(analyses)} page(s), "
            f"{metrics.paragraphs_total} paragraphs, {metrics.tables_total} tables"
        )
        return document, metrics

    def build_elements(self, analysis: PageAnalysis) -> List[Element]:
        """Turn one page's analysis into paragraphs and tables in reading order."""
        starts = dict(analysis.tables)
        elements: List[Element] = []
        for index, line in enumerate(analysis.lines):
            if index in starts:
                elements.append(starts[index])
            if index in analysis.table_rows:
                continue
            text = line.text
            if not text:
                continue
            elements.append(Paragraph(
                text=text,
                font_size=line.font_size,
                page_number=analysis.page_number
            ))
        return elements

    def build_plain_text(self, elements: Sequence[Element]) -> str:
        """
        Flatten one page's elements.

        Consecutive paragraphs form a newline-joined prose block, each table
        becomes tab-separated rows between sentinel markers, and blocks are
        separated by a blank line.
        """
        blocks: List[str] = []
        prose: List[str] = []
        for element in elements:
            if isinstance(element, Table):
                if prose:
                    blocks.append("\n".join(prose))
                    prose = []
                rows = ["\t".join(row) for row in element.grid]
                blocks.append("\n".join([PLAIN_TEXT_TABLE_START, *rows, PLAIN_TEXT_TABLE_END]))
            else:
                prose.append(element.text)
        if prose:
            blocks.append("\n".join(prose))
        return "\n\n".join(blocks)

    def _calculate_metrics(
        self,
        document: DocumentIR,
        analyses: List[PageAnalysis],
        image_counts: Optional[Sequence[int]],
        processing_time: float
    ) -> DocumentMetrics:
        """Calculate document-wide metrics."""
        metrics = DocumentMetrics()
        metrics.processing_time_seconds = processing_time
        metrics.pages_processed = len(analyses)
        metrics.empty_pages = sum(1 for a in analyses if not a.lines)
        metrics.images_detected = sum(image_counts or [])

        for element in document.elements:
            if isinstance(element, Table):
                metrics.tables_total += 1
                metrics.table_rows_total += element.num_rows
            else:
                metrics.paragraphs_total += 1
                if heading_level(element.font_size, self.config.heading):
                    metrics.headings_total += 1

        return metrics


def build_document(
    pages: Sequence[Sequence[TextFragment]],
    config: Optional[PipelineConfig] = None
) -> DocumentIR:
    """Run the full pipeline on pages of fragments."""
    return DocumentAssembler(config).process_document(pages)


# ============================================================================
# Example Usage
# ============================================================================

if __name__ == "__main__":
    page = [
        TextFragment("Price List", 0, 760, 26),
        TextFragment("Item", 0, 700, 11),
        TextFragment("Qty", 60, 700, 11),
        TextFragment("Price", 120, 700, 11),
        TextFragment("Pen", 0, 680, 11),
        TextFragment("3", 60, 680, 11),
        TextFragment("1.50", 120, 680, 11),
    ]

    doc = build_document([page])
    print(f"Elements: {len(doc.elements)}")
    print(doc.plain_text)
