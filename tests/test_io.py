"""
Tests for fragment sources and JSON helpers.
"""

import json

import numpy as np
import pytest

from docstruct.utils.io import (
    SourceDocument,
    load_fragments_json,
    load_pdf_fragments,
    load_source,
    save_json,
    load_json,
    ensure_dir,
    detect_input_type,
)
from docstruct.utils.layout import TextFragment
from docstruct.utils.assembler import DocumentAssembler


def build_document_from(source):
    return DocumentAssembler().process_document(
        source.pages, source.image_counts, source.source_page_numbers
    )


def write_json(path, data):
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


class TestLoadFragmentsJson:
    """Tests for the JSON fragment source."""

    def test_pages_object(self, tmp_path):
        path = write_json(tmp_path / "doc.json", {"pages": [
            [{"text": "Title", "x": 0, "y": 700, "fontSize": 24}],
            [{"text": "Body", "x": 10, "y": 650, "font_size": 11}],
        ]})

        source = load_fragments_json(path)

        assert source.num_pages == 2
        assert source.pages[0] == [TextFragment("Title", 0.0, 700.0, 24.0)]
        assert source.pages[1][0].font_size == 11.0
        assert source.image_counts == [0, 0]
        assert source.page_numbers == [1, 2]

    def test_bare_list(self, tmp_path):
        path = write_json(tmp_path / "doc.json", [[{"text": "a", "x": 1, "y": 2}]])
        source = load_fragments_json(path)
        assert source.pages == [[TextFragment("a", 1.0, 2.0, 0.0)]]

    def test_page_object_with_images(self, tmp_path):
        path = write_json(tmp_path / "doc.json", {"pages": [
            {"fragments": [{"text": "a", "x": 1, "y": 2}], "images": 3},
            {"fragments": []},
        ]})

        source = load_fragments_json(path)

        assert source.image_counts == [3, 0]
        assert source.pages[1] == []

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_fragments_json(tmp_path / "missing.json")

    @pytest.mark.parametrize("payload", [
        {"pages": "nope"},
        {"pages": ["not a page"]},
        {"pages": [["not a fragment"]]},
        {"pages": [[{"text": "a", "x": "left", "y": 0}]]},
        42,
    ])
    def test_malformed(self, tmp_path, payload):
        path = write_json(tmp_path / "bad.json", payload)
        with pytest.raises(ValueError):
            load_fragments_json(path)

    def test_control_characters_cleaned(self, tmp_path):
        path = write_json(tmp_path / "doc.json", [[{"text": "a\fb", "x": 0, "y": 0}]])
        assert load_fragments_json(path).pages[0][0].text == "a b"

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ValueError):
            load_fragments_json(path)


class TestSourceDocument:
    """Tests for page selection."""

    def test_select_pages(self):
        pages = [[TextFragment(str(i), 0, 0)] for i in range(1, 5)]
        source = SourceDocument("doc.json", pages, [0, 1, 2, 3])

        selected = source.select_pages([2, 4, 9])

        assert selected.num_pages == 2
        assert [p[0].text for p in selected.pages] == ["2", "4"]
        assert selected.image_counts == [1, 3]

    def test_select_pages_keeps_source_numbers(self):
        pages = [[TextFragment(str(i), 0, 0)] for i in range(1, 4)]
        source = SourceDocument("doc.json", pages)

        selected = source.select_pages([3, 1])

        assert selected.page_numbers == [3, 1]
        assert [p[0].text for p in selected.pages] == ["3", "1"]

    def test_select_from_partial_source(self):
        pages = [[TextFragment("b", 0, 0)], [TextFragment("c", 0, 0)]]
        source = SourceDocument("doc.pdf", pages, [0, 0], page_numbers=[2, 3])

        selected = source.select_pages([1, 3])

        assert selected.source_page_numbers == [3]
        assert selected.pages[0][0].text == "c"

    def test_default_page_numbers(self):
        assert SourceDocument("doc.json", [[], []]).source_page_numbers == [1, 2]

    def test_select_pages_without_counts(self):
        source = SourceDocument("doc.json", [[], []])
        assert source.select_pages([2]).image_counts == [0]


class TestLoadSource:
    """Tests for input dispatch."""

    def test_detect_input_type(self, tmp_path):
        pdf = tmp_path / "a.PDF"
        pdf.write_bytes(b"%PDF-1.4")
        js = write_json(tmp_path / "a.json", [])
        txt = tmp_path / "a.txt"
        txt.write_text("x")

        assert detect_input_type(pdf) == "pdf"
        assert detect_input_type(js) == "json"
        assert detect_input_type(txt) == "unknown"
        assert detect_input_type(tmp_path / "missing.json") == "unknown"

    def test_dispatch_json(self, tmp_path):
        path = write_json(tmp_path / "a.json", [[]])
        assert load_source(path).num_pages == 1

    def test_missing_input(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_source(tmp_path / "missing.pdf")

    def test_unsupported_input(self, tmp_path):
        path = tmp_path / "notes.txt"
        path.write_text("hello")
        with pytest.raises(ValueError):
            load_source(path)

    def test_missing_pdf(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_pdf_fragments(tmp_path / "missing.pdf")


class TestPdfFragments:
    """Tests for the PyMuPDF fragment source."""

    @pytest.fixture
    def fitz(self):
        return pytest.importorskip("fitz")

    def test_text_spans_become_fragments(self, fitz, tmp_path):
        path = tmp_path / "sample.pdf"
        pdf = fitz.open()
        page = pdf.new_page()
        page.insert_text((72, 100), "Hello", fontsize=12)
        page.insert_text((72, 200), "World", fontsize=20)
        pdf.save(str(path))
        pdf.close()

        source = load_pdf_fragments(path)

        assert source.num_pages == 1
        assert source.image_counts == [0]
        hello, world = sorted(source.pages[0], key=lambda f: -f.y)
        assert hello.text == "Hello"
        assert hello.x == pytest.approx(72, abs=1)
        assert hello.y == pytest.approx(page.rect.height - 100, abs=1)
        assert hello.font_size == pytest.approx(12)
        assert world.y < hello.y

    def test_page_range(self, fitz, tmp_path):
        path = tmp_path / "pages.pdf"
        pdf = fitz.open()
        for i in range(3):
            pdf.new_page().insert_text((72, 100), f"Page {i + 1}")
        pdf.save(str(path))
        pdf.close()

        source = load_pdf_fragments(path, first_page=2, last_page=3)

        assert [p[0].text for p in source.pages] == ["Page 2", "Page 3"]
        assert source.page_numbers == [2, 3]

        doc = build_document_from(source)
        assert [p.page_number for p in doc.paragraphs] == [2, 3]

    def test_corrupt_pdf(self, fitz, tmp_path):
        path = tmp_path / "corrupt.pdf"
        path.write_bytes(b"this is not a pdf")
        with pytest.raises(RuntimeError):
            load_pdf_fragments(path)


class TestJsonHelpers:
    """Tests for save_json/load_json."""

    def test_numpy_values(self, tmp_path):
        path = save_json({"anchors": np.array([1.5, 2.0]), "count": np.int64(3)},
                         tmp_path / "out" / "data.json")

        assert load_json(path) == {"anchors": [1.5, 2.0], "count": 3}

    def test_dataclass_values(self, tmp_path):
        path = save_json(TextFragment("a", 1, 2, 3), tmp_path / "frag.json")
        assert load_json(path) == {"text": "a", "x": 1, "y": 2, "font_size": 3}

    def test_ensure_dir(self, tmp_path):
        target = ensure_dir(tmp_path / "a" / "b")
        assert target.is_dir()
