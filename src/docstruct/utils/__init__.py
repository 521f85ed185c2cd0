"""
Utility modules for the document structure pipeline.
"""

from .io import (
    SourceDocument, load_fragments_json, load_pdf_fragments, load_source,
    save_json, load_json, ensure_dir, detect_input_type,
)
from .layout import TextFragment, Line, LineGrouper, group_lines
from .tables import Cell, Table, TableDetector, PageAnalysis, detect_tables
from .assembler import (
    Paragraph, ImageRef, DocumentIR, DocumentMetrics, DocumentAssembler,
    heading_level, build_document,
)
from .export import (
    HtmlExporter, MarkdownExporter, DocxExporter, LatexExporter,
    JsonExporter, XmlExporter, CsvExporter, TextExporter, RtfExporter,
    DocumentExporter, render, get_exporter, load_document_json, load_document_xml,
)

__all__ = [
    # IO
    "SourceDocument", "load_fragments_json", "load_pdf_fragments", "load_source",
    "save_json", "load_json", "ensure_dir", "detect_input_type",
    # Lines
    "TextFragment", "Line", "LineGrouper", "group_lines",
    # Tables
    "Cell", "Table", "TableDetector", "PageAnalysis", "detect_tables",
    # Assembly
    "Paragraph", "ImageRef", "DocumentIR", "DocumentMetrics", "DocumentAssembler",
    "heading_level", "build_document",
    # Export
    "HtmlExporter", "MarkdownExporter", "DocxExporter", "LatexExporter",
    "JsonExporter", "XmlExporter", "CsvExporter", "TextExporter", "RtfExporter",
    "DocumentExporter", "render", "get_exporter",
    "load_document_json", "load_document_xml",
]
