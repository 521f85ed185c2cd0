#!/usr/bin/env python
"""
Command-line interface for the Document Structure pipeline.

Usage:
    docstruct --input <pdf_or_fragments.json> --output <output_dir> [options]

Examples:
    # Convert a PDF to every supported format
    docstruct --input report.pdf --output ./output --format all

    # Tables only, as CSV
    docstruct --input report.pdf --output ./output --format csv

    # Pre-extracted fragments, pages 2 to 4, four worker threads
    docstruct --input fragments.json --output ./output --pages 2-4 --workers 4
"""

import sys
import argparse
import logging
import time
from pathlib import Path
from typing import List, Optional

from docstruct import __version__
from docstruct.config import SUPPORTED_FORMATS, get_config

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("docstruct")


def setup_argparser() -> argparse.ArgumentParser:
    """Create argument parser."""
    parser = argparse.ArgumentParser(
        description="Document Structure - rebuild tables and headings from PDF text and export them",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  Convert a PDF and export all formats:
    docstruct --input report.pdf --output ./output --format all

  Export only the tables:
    docstruct --input report.pdf --output ./output --format csv

  Process only specific pages:
    docstruct --input report.pdf --output ./output --pages 1-5
        """
    )

    # Required arguments
    parser.add_argument(
        "--input", "-i",
        required=True,
        help="Input PDF file or fragment JSON file"
    )

    parser.add_argument(
        "--output", "-o",
        required=True,
        help="Output directory for generated files"
    )

    # Optional arguments
    parser.add_argument(
        "--format", "-f",
        nargs="+",
        default=["json", "markdown"],
        choices=SUPPORTED_FORMATS + ["all"],
        help="Output format(s) (default: json markdown)"
    )

    parser.add_argument(
        "--pages",
        type=str,
        default=None,
        help="Page range to process, e.g., '1-5' or '1,3,5' (default: all)"
    )

    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Analyse pages in parallel with this many threads (default: sequential)"
    )

    parser.add_argument(
        "--line-tolerance",
        type=float,
        default=None,
        help="Vertical tolerance for grouping fragments into lines; 0 = exact match"
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Re-raise errors with a traceback (also set by DOCSTRUCT_DEBUG=true)"
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose output"
    )

    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Suppress non-error output"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}"
    )

    return parser


def parse_page_range(page_str: str, max_pages: int) -> List[int]:
    """Parse page range string to list of page numbers."""
    pages = []

    for part in page_str.split(","):
        part = part.strip()
        if not part:
            continue
        if "-" in part:
            start, end = part.split("-", 1)
            start = max(int(start), 1)
            end = min(int(end), max_pages)
            pages.extend(range(start, end + 1))
        else:
            page = int(part)
            if 1 <= page <= max_pages:
                pages.append(page)

    return sorted(set(pages))


def run_pipeline(args) -> int:
    """Run the reconstruction pipeline and export the requested formats."""
    from docstruct.utils.io import load_source, ensure_dir
    from docstruct.utils.assembler import DocumentAssembler
    from docstruct.utils.export import DocumentExporter

    start_time = time.time()

    config = get_config()
    if args.workers is not None:
        config.max_workers = args.workers
    if args.line_tolerance is not None:
        config.line.y_tolerance = args.line_tolerance

    output_dir = Path(args.output)
    ensure_dir(output_dir)

    input_path = Path(args.input)
    try:
        source = load_source(input_path)
    except (FileNotFoundError, ValueError, RuntimeError, ImportError) as e:
        logger.error(f"Could not read input: {e}")
        if args.debug:
            raise
        return 1

    logger.info(f"Loaded {source.num_pages} page(s)")

    if args.pages:
        try:
            page_numbers = parse_page_range(args.pages, source.num_pages)
        except ValueError:
            logger.error(f"Invalid page range: {args.pages}")
            return 1
        source = source.select_pages(page_numbers)
        logger.info(f"Processing pages: {page_numbers}")

    assembler = DocumentAssembler(config)
    document, metrics = assembler.process_document_with_metrics(
        source.pages, source.image_counts, source.source_page_numbers
    )

    exporter = DocumentExporter(output_dir, input_path.stem, config)
    export_results = exporter.export(document, args.format)
    for fmt, path in export_results.items():
        logger.info(f"Exported {fmt}: {path}")

    elapsed = time.time() - start_time

    if not args.quiet:
        print("\n" + "="*60)
        print("DOCUMENT CONVERSION COMPLETE")
        print("="*60)
        print(f"Source: {input_path}")
        print(f"Output: {output_dir}")
        print(f"Pages processed: {metrics.pages_processed} (empty: {metrics.empty_pages})")
        print(f"Processing time: {elapsed:.2f}s")
        print()
        print("Structure:")
        print(f"  Paragraphs: {metrics.paragraphs_total} "
              f"(headings: {metrics.headings_total})")
        print(f"  Tables: {metrics.tables_total} "
              f"(rows: {metrics.table_rows_total})")
        print(f"  Images detected (not extracted): {metrics.images_detected}")
        print("="*60)

    return 0


def main(argv: Optional[List[str]] = None):
    """Main entry point."""
    parser = setup_argparser()
    args = parser.parse_args(argv)

    args.debug = args.debug or get_config().debug_mode

    # Configure logging level
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)
    elif args.quiet:
        logging.getLogger().setLevel(logging.ERROR)

    try:
        exit_code = run_pipeline(args)
        sys.exit(exit_code)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(130)
    except Exception as e:
        logger.error(f"Unexpected error: {e}")
        if args.debug:
            raise
        sys.exit(1)


if __name__ == "__main__":
    main()
