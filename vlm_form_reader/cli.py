"""CLI interface for form extraction.

Processes scanned forms (images or PDFs) against the template catalog
and writes CSV exports into a timestamped run directory.
"""

import argparse
import logging
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from .core.catalog import TemplateCatalog, save_catalog
from .core.processor import DocumentProcessor
from .schemas.config import ProcessorConfig
from .schemas.document import DocumentStatus, UploadedFile

LOG_FORMAT = "%(asctime)s | %(name)s | %(message)s"
LOG_DATEFMT = "%H:%M:%S"

DEFAULT_OUTPUT_DIR = Path("runs")


def setup_logging(log_level: str, log_file: Optional[Path] = None) -> None:
    """Setup logging: console + optional file handler.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_file: Path to log file (UTF-8). If None, console only.
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        datefmt=LOG_DATEFMT,
        stream=sys.stdout,
    )

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(log_file, encoding="utf-8")
        fh.setLevel(level)
        fh.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT))
        logging.getLogger().addHandler(fh)


def validate_arguments(files: List[Path], api_key: Optional[str]) -> None:
    """Validate CLI arguments.

    Raises:
        SystemExit: If validation fails
    """
    if not files:
        print("Error: no input files given", file=sys.stderr)
        sys.exit(1)

    for path in files:
        if not path.is_file():
            print(f"Error: file not found: {path}", file=sys.stderr)
            sys.exit(1)

    if not api_key:
        print(
            "Error: GEMINI_API_KEY not found in environment. "
            "Please set it in .env file or as environment variable.",
            file=sys.stderr,
        )
        sys.exit(1)


def create_run_dir(parent_dir: Path) -> Path:
    """Create timestamped run subdirectory, e.g. parent_dir/run_2026-02-09_171500/"""
    ts = datetime.now().strftime("%Y-%m-%d_%H%M%S")
    run_dir = parent_dir / f"run_{ts}"
    run_dir.mkdir(parents=True, exist_ok=True)
    return run_dir


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Classify scanned business forms and export them as CSV",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  vlm-form-reader order1.png order2.pdf
  vlm-form-reader *.pdf --unified --confirm --output-dir ./runs
  vlm-form-reader scan.png --catalog my_templates.yaml --workers 2
  vlm-form-reader --dump-catalog templates.yaml

Each run creates a timestamped subdirectory inside --output-dir:
  output-dir/run_2026-02-09_171500/
    cache/pages/          document previews
    cache/vlm_responses/  raw model answers
    results/              confirmed data (YAML)
    exports/              CSV files
    logs/run.log
        """,
    )

    parser.add_argument(
        "files",
        type=Path,
        nargs="*",
        help="Images or PDFs to process (processed in the given order)",
    )
    parser.add_argument(
        "--output-dir", "-o",
        type=Path,
        default=DEFAULT_OUTPUT_DIR,
        help=f"Parent directory for run folders (default: {DEFAULT_OUTPUT_DIR})",
    )
    parser.add_argument(
        "--catalog",
        type=Path,
        default=None,
        help="Template catalog YAML (default: built-in templates)",
    )
    parser.add_argument(
        "--dump-catalog",
        type=Path,
        default=None,
        metavar="PATH",
        help="Write the built-in template catalog to PATH and exit",
    )
    parser.add_argument(
        "--dpi",
        type=int,
        default=150,
        help="DPI for PDF rendering (default: 150)",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=1,
        help="Documents extracted in parallel (default: 1 = sequential)",
    )
    parser.add_argument(
        "--confirm",
        action="store_true",
        help="Confirm every reviewed document without manual verification",
    )
    parser.add_argument(
        "--unified",
        action="store_true",
        help="Also write one unified CSV across all templates",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point.

    Returns:
        0 on success, 1 on error
    """
    args = build_parser().parse_args(argv)

    if args.dump_catalog is not None:
        save_catalog(TemplateCatalog.default(), args.dump_catalog)
        print(f"Catalog written to {args.dump_catalog}")
        return 0

    try:
        load_dotenv()
        api_key = os.getenv("GEMINI_API_KEY")

        validate_arguments(args.files, api_key)

        run_dir = create_run_dir(args.output_dir)
        log_file = run_dir / "logs" / "run.log"

        setup_logging(args.log_level, log_file)
        logger = logging.getLogger(__name__)

        logger.info(f"Run directory: {run_dir}")
        logger.info(f"Processing {len(args.files)} files")

        config = ProcessorConfig(
            state_dir=run_dir,
            auto_save=True,
            render_dpi=args.dpi,
            max_workers=args.workers,
            log_level=args.log_level,
            catalog_path=args.catalog,
        )
        processor = DocumentProcessor(config=config)

        documents = processor.submit([UploadedFile.from_path(p) for p in args.files])

        if args.confirm:
            documents = [
                processor.confirm(d.id) if d.status is DocumentStatus.REVIEW else d
                for d in documents
            ]

        print()
        print("=" * 60)
        exported = 0
        for doc in documents:
            template = processor.catalog.get(doc.template_id)
            template_name = template.name if template else (doc.template_id or "-")
            line = f"{doc.file.name}: {doc.status.label} | {template_name}"

            if doc.status is DocumentStatus.ERROR:
                line += f" | {doc.error}"
            elif template is not None:
                filename, _ = processor.export_document(doc.id)
                line += f" | {filename}"
                exported += 1
            print(line)

        if args.unified:
            unified = processor.export_unified([d.id for d in documents])
            if unified is None:
                print("Unified export: nothing selected")
            else:
                print(f"Unified export: {unified[0]}")

        print("=" * 60)
        print(f"Run directory:  {run_dir}")
        print(f"CSV exported:   {exported}")
        print(f"Log:            {log_file}")
        print("=" * 60)

        return 0

    except KeyboardInterrupt:
        print("\nProcessing interrupted by user", file=sys.stderr)
        return 1

    except Exception as e:
        logging.getLogger(__name__).exception(f"Error during processing: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
