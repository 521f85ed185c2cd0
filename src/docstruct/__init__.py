"""
Document Structure Reconstruction
=================================

Rebuilds tables and headings from pages of positioned text fragments
(as exposed by a PDF text layer) and renders the result into many formats.

Main components:
- Line grouping of fragments into rows
- Table detection from column anchors
- Document IR assembly with a plain-text projection
- Multi-format export (HTML, Markdown, DOCX, LaTeX, JSON, XML, CSV, TXT, RTF)
"""

__version__ = "1.0.0"
__author__ = "Document Reconstruction Team"
