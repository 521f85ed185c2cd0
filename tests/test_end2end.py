"""
End-to-end tests for the docstruct command-line pipeline.
"""

import json

import pytest

from docstruct.cli import main, parse_page_range, setup_argparser
from docstruct.config import SUPPORTED_FORMATS
from docstruct.utils.export import load_document_json


@pytest.fixture
def fragments_file(tmp_path, price_page, quarterly_page):
    """Two pages of fragments written in the JSON fragment format."""
    path = tmp_path / "report.json"
    data = {"pages": [
        [f.to_dict() for f in price_page],
        {"fragments": [f.to_dict() for f in quarterly_page], "images": 1},
    ]}
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


def run_cli(argv):
    with pytest.raises(SystemExit) as exc_info:
        main(argv)
    return exc_info.value.code


class TestEndToEnd:
    """End-to-end integration tests."""

    def test_default_formats(self, fragments_file, tmp_path):
        out = tmp_path / "out"

        code = run_cli(["-i", str(fragments_file), "-o", str(out), "-q"])

        assert code == 0
        assert (out / "report.json").exists()
        assert (out / "report.md").exists()

        document = load_document_json((out / "report.json").read_text(encoding="utf-8"))
        assert len(document.tables) == 2
        assert [t.page_number for t in document.tables] == [1, 2]
        assert document.tables[1].grid[2] == ["South", "8", "", "11"]
        assert "--- Page Break ---" in document.plain_text

    def test_all_formats(self, fragments_file, tmp_path):
        pytest.importorskip("docx")
        out = tmp_path / "all"

        code = run_cli(["-i", str(fragments_file), "-o", str(out), "-f", "all", "-q"])

        assert code == 0
        extensions = {p.suffix for p in out.iterdir()}
        assert extensions == {
            ".json", ".xml", ".csv", ".md", ".html", ".docx", ".tex", ".txt", ".rtf"
        }
        assert len(extensions) == len(SUPPORTED_FORMATS)

    def test_markdown_content(self, fragments_file, tmp_path):
        out = tmp_path / "md"

        run_cli(["-i", str(fragments_file), "-o", str(out), "-f", "markdown", "-q"])

        md = (out / "report.md").read_text(encoding="utf-8")
        assert md.startswith("# Price List\n")
        assert "| Item | Qty | Price |" in md
        assert "| South | 8 |  | 11 |" in md

    def test_page_selection(self, fragments_file, tmp_path):
        out = tmp_path / "p2"

        code = run_cli(["-i", str(fragments_file), "-o", str(out),
                        "-f", "csv", "json", "--pages", "2", "-q"])

        assert code == 0
        assert (out / "report.csv").read_text(encoding="utf-8") == (
            "Region,Q1,Q2,Q3\nNorth,10,12,15\nSouth,8,,11\n"
        )
        data = json.loads((out / "report.json").read_text(encoding="utf-8"))
        assert [e["page"] for e in data["elements"]] == [2]

    def test_summary_printed(self, fragments_file, tmp_path, capsys):
        run_cli(["-i", str(fragments_file), "-o", str(tmp_path / "s"), "-f", "txt"])

        captured = capsys.readouterr().out
        assert "DOCUMENT CONVERSION COMPLETE" in captured
        assert "Tables: 2" in captured
        assert "Images detected (not extracted): 1" in captured

    def test_missing_input(self, tmp_path, monkeypatch):
        monkeypatch.delenv("DOCSTRUCT_DEBUG", raising=False)
        code = run_cli(["-i", str(tmp_path / "missing.json"), "-o", str(tmp_path), "-q"])
        assert code == 1

    def test_debug_env_reraises(self, tmp_path, monkeypatch):
        monkeypatch.setenv("DOCSTRUCT_DEBUG", "true")
        with pytest.raises(FileNotFoundError):
            main(["-i", str(tmp_path / "missing.json"), "-o", str(tmp_path), "-q"])

    def test_debug_flag_reraises(self, tmp_path, monkeypatch):
        monkeypatch.delenv("DOCSTRUCT_DEBUG", raising=False)
        with pytest.raises(FileNotFoundError):
            main(["-i", str(tmp_path / "missing.json"), "-o", str(tmp_path), "-q", "--debug"])

    def test_malformed_input(self, tmp_path):
        bad = tmp_path / "bad.json"
        bad.write_text('{"pages": 3}', encoding="utf-8")
        assert run_cli(["-i", str(bad), "-o", str(tmp_path), "-q"]) == 1

    def test_invalid_page_range(self, fragments_file, tmp_path):
        code = run_cli(["-i", str(fragments_file), "-o", str(tmp_path),
                        "--pages", "one-two", "-q"])
        assert code == 1

    def test_unknown_format_rejected(self, fragments_file, tmp_path):
        # argparse exits with status 2 on invalid choices
        assert run_cli(["-i", str(fragments_file), "-o", str(tmp_path), "-f", "pptx"]) == 2


class TestArgumentParsing:
    """Tests for CLI argument helpers."""

    @pytest.mark.parametrize("page_str,expected", [
        ("1-3", [1, 2, 3]),
        ("1,3,5", [1, 3, 5]),
        ("2-10", [2, 3, 4, 5]),
        ("5,1-2", [1, 2, 5]),
        ("9", []),
    ])
    def test_parse_page_range(self, page_str, expected):
        assert parse_page_range(page_str, max_pages=5) == expected

    def test_parse_page_range_invalid(self):
        with pytest.raises(ValueError):
            parse_page_range("a-b", max_pages=5)

    def test_parser_defaults(self):
        args = setup_argparser().parse_args(["-i", "in.json", "-o", "out"])
        assert args.format == ["json", "markdown"]
        assert args.workers is None
        assert args.line_tolerance is None
