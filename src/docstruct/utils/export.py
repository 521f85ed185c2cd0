"""
Export module for document reconstruction.

Provides:
- HTML and Markdown export
- DOCX export (using python-docx)
- LaTeX export
- JSON and XML export with parsers for reading them back
- CSV export (tables only)
- Plain text and RTF export of the plain-text projection

Every exporter is a read-only consumer of a DocumentIR: ``render`` returns
the payload and ``export`` writes it to a file.
"""

import csv
import io
import json
import logging
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Dict, Any, Optional, List, Union

from ..config import (
    ExportConfig,
    HeadingConfig,
    PipelineConfig,
    SUPPORTED_FORMATS,
    JSON_SCHEMA_VERSION,
)
from .assembler import DocumentIR, Paragraph, compact_number, heading_level
from .layout import clean_text
from .tables import Table

logger = logging.getLogger(__name__)


# ============================================================================
# Base Exporter
# ============================================================================

class BaseExporter:
    """Shared file handling for exporters."""

    extension = ".txt"

    def __init__(
        self,
        export_config: Optional[ExportConfig] = None,
        heading_config: Optional[HeadingConfig] = None
    ):
        self.export_config = export_config or ExportConfig()
        self.heading_config = heading_config or HeadingConfig()

    def render(self, document: DocumentIR) -> Union[str, bytes]:
        raise NotImplementedError

    def export(
        self,
        document: DocumentIR,
        output_path: Union[str, Path]
    ) -> Path:
        """
        Render the document and write it to a file.

        Args:
            document: Document IR
            output_path: Output file path

        Returns:
            Path to the generated file
        """
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        payload = self.render(document)
        if isinstance(payload, bytes):
            output_path.write_bytes(payload)
        else:
            with open(output_path, 'w', encoding='utf-8', newline='') as f:
                f.write(payload)

        logger.info(f"Exported {type(self).__name__.replace('Exporter', '')} to: {output_path}")
        return output_path

    def _level(self, paragraph: Paragraph) -> int:
        return heading_level(paragraph.font_size, self.heading_config)


# ============================================================================
# HTML Exporter
# ============================================================================

class HtmlExporter(BaseExporter):
    """Export document to an HTML page."""

    extension = ".html"

    def render(self, document: DocumentIR) -> str:
        lines = [
            "<!DOCTYPE html>",
            "<html>",
            "<head>",
            '<meta charset="utf-8">',
            f"<title>{self._escape_html(self.export_config.html_title)}</title>",
            "</head>",
            "<body>",
        ]

        for element in document.elements:
            if isinstance(element, Table):
                lines.append(self._table_to_html(element))
            else:
                level = self._level(element)
                tag = f"h{level}" if level else "p"
                lines.append(f"<{tag}>{self._escape_html(element.text)}</{tag}>")

        lines.extend(["</body>", "</html>"])
        return "\n".join(lines) + "\n"

    def _table_to_html(self, table: Table) -> str:
        """Build HTML table with the first row as header."""
        lines = ['<table>']

        lines.append('  <thead>')
        lines.append('    <tr>')
        for cell in table.header:
            lines.append(f'      <th>{self._escape_html(cell)}</th>')
        lines.append('    </tr>')
        lines.append('  </thead>')

        lines.append('  <tbody>')
        for row in table.body:
            lines.append('    <tr>')
            for cell in row:
                lines.append(f'      <td>{self._escape_html(cell)}</td>')
            lines.append('    </tr>')
        lines.append('  </tbody>')

        lines.append('</table>')
        return "\n".join(lines)

    @staticmethod
    def _escape_html(text: str) -> str:
        """Escape HTML special characters."""
        return (text
            .replace('&', '&amp;')
            .replace('<', '&lt;')
            .replace('>', '&gt;')
            .replace('"', '&quot;')
        )


# ============================================================================
# Markdown Exporter
# ============================================================================

class MarkdownExporter(BaseExporter):
    """Export document to Markdown format."""

    extension = ".md"

    def render(self, document: DocumentIR) -> str:
        blocks = []
        for element in document.elements:
            if isinstance(element, Table):
                blocks.append(self._table_to_markdown(element))
            else:
                level = self._level(element)
                blocks.append(f"{'#' * level} {element.text}" if level else element.text)

        if not blocks:
            return ""
        return "\n\n".join(blocks) + "\n"

    def _table_to_markdown(self, table: Table) -> str:
        """Build a pipe table; the first row is the header."""
        lines = []
        lines.append("| " + " | ".join(self._escape_cell(c) for c in table.header) + " |")
        lines.append("| " + " | ".join("---" for _ in range(table.num_cols)) + " |")
        for row in table.body:
            lines.append("| " + " | ".join(self._escape_cell(c) for c in row) + " |")
        return "\n".join(lines)

    @staticmethod
    def _escape_cell(text: str) -> str:
        return (text
            .replace("|", "\\|")
            .replace("\r\n", "<br>")
            .replace("\n", "<br>")
        )


# ============================================================================
# DOCX Exporter
# ============================================================================

class DocxExporter(BaseExporter):
    """Export document to DOCX format using python-docx."""

    extension = ".docx"

    def render(self, document: DocumentIR) -> bytes:
        try:
            from docx import Document as DocxDocument
            from docx.enum.text import WD_ALIGN_PARAGRAPH
        except ImportError:
            raise ImportError(
                "python-docx is required for DOCX export. "
                "Install with: pip install python-docx"
            )

        doc = DocxDocument()

        for element in document.elements:
            if isinstance(element, Table):
                self._add_table(doc, element)
                continue

            level = self._level(element)
            if level:
                doc.add_heading(clean_text(element.text), level=level)
            else:
                p = doc.add_paragraph(clean_text(element.text))
                p.alignment = WD_ALIGN_PARAGRAPH.JUSTIFY

        # Only reached for documents with no reconstructed structure
        if document.is_empty and document.plain_text:
            for block in document.plain_text.split("\n\n"):
                doc.add_paragraph(clean_text(block))

        buffer = io.BytesIO()
        doc.save(buffer)
        return buffer.getvalue()

    def _add_table(self, doc: Any, table: Table):
        """Add a bordered table with a shaded, bold header row."""
        if table.num_rows == 0 or table.num_cols == 0:
            return

        docx_table = doc.add_table(rows=table.num_rows, cols=table.num_cols)
        docx_table.style = 'Table Grid'

        for i, row_data in enumerate(table.grid):
            row = docx_table.rows[i]
            for j, cell_text in enumerate(row_data):
                cell = row.cells[j]
                cell.text = clean_text(cell_text)
                if i == 0:
                    self._shade_cell(cell, self.export_config.docx_header_fill)
                    for run in cell.paragraphs[0].runs:
                        run.bold = True

    @staticmethod
    def _shade_cell(cell: Any, fill: str):
        from docx.oxml import OxmlElement
        from docx.oxml.ns import qn

        shading = OxmlElement('w:shd')
        shading.set(qn('w:val'), 'clear')
        shading.set(qn('w:color'), 'auto')
        shading.set(qn('w:fill'), fill)
        cell._tc.get_or_add_tcPr().append(shading)


# ============================================================================
# LaTeX Exporter
# ============================================================================

LATEX_PACKAGE_OPTIONS = {
    "inputenc": "utf8",
    "fontenc": "T1",
    "geometry": "margin=1in",
}

LATEX_SPECIAL_CHARS = {
    '\\': '\\textbackslash{}',
    '&': '\\&',
    '%': '\\%',
    '$': '\\$',
    '#': '\\#',
    '_': '\\_',
    '{': '\\{',
    '}': '\\}',
    '~': '\\textasciitilde{}',
    '^': '\\textasciicircum{}',
}

LATEX_SECTIONS = {1: "section", 2: "subsection", 3: "subsubsection"}


class LatexExporter(BaseExporter):
    """Export document to LaTeX format."""

    extension = ".tex"

    def render(self, document: DocumentIR) -> str:
        lines = []

        lines.append(f"\\documentclass{{{self.export_config.latex_document_class}}}")
        for pkg in self.export_config.latex_packages:
            options = LATEX_PACKAGE_OPTIONS.get(pkg)
            if options:
                lines.append(f"\\usepackage[{options}]{{{pkg}}}")
            else:
                lines.append(f"\\usepackage{{{pkg}}}")
        lines.append("")
        lines.append("\\begin{document}")
        lines.append("")

        for element in document.elements:
            if isinstance(element, Table):
                lines.append(self._table_to_latex(element))
            else:
                level = self._level(element)
                text = escape_latex(element.text)
                if level:
                    lines.append(f"\\{LATEX_SECTIONS[level]}{{{text}}}")
                else:
                    lines.append(text)
            lines.append("")

        lines.append("\\end{document}")
        return "\n".join(lines) + "\n"

    def _table_to_latex(self, table: Table) -> str:
        """Convert table to a tabular environment, one line per row."""
        col_spec = "|" + "l|" * table.num_cols

        lines = [
            f"\\begin{{tabular}}{{{col_spec}}}",
            "\\hline"
        ]

        for i, row in enumerate(table.grid):
            cells = [escape_latex(cell) for cell in row]
            if i == 0:
                cells = [f"\\textbf{{{c}}}" if c else c for c in cells]
            lines.append(" & ".join(cells) + " \\\\")
            lines.append("\\hline")

        lines.append("\\end{tabular}")
        return "\n".join(lines)


def escape_latex(text: str) -> str:
    """Escape special LaTeX characters, backslash included."""
    if not text:
        return ""
    return "".join(LATEX_SPECIAL_CHARS.get(ch, ch) for ch in text)


# ============================================================================
# JSON Exporter
# ============================================================================

class JsonExporter(BaseExporter):
    """Export document to JSON, preserving every element verbatim."""

    extension = ".json"

    def render(self, document: DocumentIR) -> str:
        return json.dumps(document.to_dict(), indent=2, ensure_ascii=False) + "\n"


def load_document_json(text: str) -> DocumentIR:
    """Parse JsonExporter output back into a DocumentIR."""
    return DocumentIR.from_dict(json.loads(text))


# ============================================================================
# XML Exporter
# ============================================================================

class XmlExporter(BaseExporter):
    """Export document to XML with the same fidelity as JSON."""

    extension = ".xml"

    def render(self, document: DocumentIR) -> str:
        root = ET.Element("document", {"schemaVersion": JSON_SCHEMA_VERSION})

        for element in document.elements:
            if isinstance(element, Table):
                table_el = ET.SubElement(root, "table", {"page": str(element.page_number)})
                for row in element.grid:
                    row_el = ET.SubElement(table_el, "row")
                    for cell in row:
                        ET.SubElement(row_el, "cell").text = clean_text(cell)
            else:
                para_el = ET.SubElement(root, "paragraph", {
                    "fontSize": str(compact_number(element.font_size)),
                    "page": str(element.page_number),
                })
                para_el.text = clean_text(element.text)

        ET.SubElement(root, "images")
        ET.indent(root)
        # A raw carriage return would be normalised away by any XML parser
        body = ET.tostring(root, encoding="unicode").replace("\r", "&#13;")
        return '<?xml version="1.0" encoding="UTF-8"?>\n' + body + "\n"


def load_document_xml(text: str) -> DocumentIR:
    """Parse XmlExporter output back into a DocumentIR."""
    root = ET.fromstring(text.encode("utf-8"))
    elements = []
    for child in root:
        if child.tag == "table":
            grid = [
                [cell.text or "" for cell in row.findall("cell")]
                for row in child.findall("row")
            ]
            elements.append(Table.from_grid(grid, int(child.get("page", "1"))))
        elif child.tag == "paragraph":
            elements.append(Paragraph(
                text=child.text or "",
                font_size=float(child.get("fontSize", "0")),
                page_number=int(child.get("page", "1"))
            ))
    return DocumentIR(elements=tuple(elements))


# ============================================================================
# CSV Exporter
# ============================================================================

class CsvExporter(BaseExporter):
    """Export tables only; paragraphs are dropped."""

    extension = ".csv"

    def render(self, document: DocumentIR) -> str:
        chunks = []
        for table in document.tables:
            output = io.StringIO()
            writer = csv.writer(
                output,
                delimiter=self.export_config.csv_delimiter,
                lineterminator="\n"
            )
            writer.writerows(table.grid)
            chunks.append(output.getvalue())

        # Each chunk ends with a newline, so this leaves one blank line between tables
        return "\n".join(chunks)


# ============================================================================
# Plain Text and RTF Exporters
# ============================================================================

class TextExporter(BaseExporter):
    """Export the plain-text projection."""

    extension = ".txt"

    def render(self, document: DocumentIR) -> str:
        return document.plain_text + "\n" if document.plain_text else ""


class RtfExporter(BaseExporter):
    """Export the plain-text projection wrapped in a minimal RTF envelope."""

    extension = ".rtf"

    def render(self, document: DocumentIR) -> str:
        header = "{\\rtf1\\ansi\\deff0 {\\fonttbl {\\f0 Times New Roman;}}\\f0\\fs24 "
        return header + escape_rtf(document.plain_text) + "}"


def escape_rtf(text: str) -> str:
    """Escape RTF control characters; non-ASCII becomes \\uN? escapes."""
    out = []
    for ch in text:
        if ch == '\\':
            out.append('\\\\')
        elif ch in '{}':
            out.append('\\' + ch)
        elif ch == '\n':
            out.append('\\par ')
        elif ch == '\t':
            out.append('\\tab ')
        elif ord(ch) > 127:
            code = ord(ch)
            if code > 32767:
                code -= 65536
            out.append(f'\\u{code}?')
        else:
            out.append(ch)
    return "".join(out)


# ============================================================================
# Registry
# ============================================================================

EXPORTERS = {
    "html": HtmlExporter,
    "markdown": MarkdownExporter,
    "docx": DocxExporter,
    "latex": LatexExporter,
    "json": JsonExporter,
    "xml": XmlExporter,
    "csv": CsvExporter,
    "txt": TextExporter,
    "rtf": RtfExporter,
}


def get_exporter(fmt: str, config: Optional[PipelineConfig] = None) -> BaseExporter:
    """Instantiate the exporter for a format key."""
    if fmt not in EXPORTERS:
        raise ValueError(
            f"Unsupported format: {fmt!r} (expected one of {', '.join(SUPPORTED_FORMATS)})"
        )
    config = config or PipelineConfig()
    return EXPORTERS[fmt](config.export, config.heading)


def render(
    document: DocumentIR,
    fmt: str,
    config: Optional[PipelineConfig] = None
) -> Union[str, bytes]:
    """Render a document into one format."""
    return get_exporter(fmt, config).render(document)


# ============================================================================
# Multi-Format Exporter
# ============================================================================

class DocumentExporter:
    """Convenience class for exporting to multiple formats."""

    def __init__(
        self,
        output_dir: Union[str, Path],
        base_name: str = "document",
        config: Optional[PipelineConfig] = None
    ):
        self.output_dir = Path(output_dir)
        self.base_name = base_name
        self.config = config or PipelineConfig()

    def export(
        self,
        document: DocumentIR,
        formats: Optional[List[str]] = None
    ) -> Dict[str, Path]:
        """
        Export document to multiple formats.

        Args:
            document: Document IR
            formats: Format keys, or ['all']

        Returns:
            Dictionary mapping format to output path
        """
        if formats is None:
            formats = ["json", "markdown"]

        if "all" in formats:
            formats = list(SUPPORTED_FORMATS)

        self.output_dir.mkdir(parents=True, exist_ok=True)

        results = {}
        for fmt in formats:
            exporter = get_exporter(fmt, self.config)
            path = self.output_dir / f"{self.base_name}{exporter.extension}"
            results[fmt] = exporter.export(document, path)

        return results
