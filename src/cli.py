"""Command-line interface for batch certificate scanning and JSON export.

Provides subcommands for scanning folders of certificate images and for
extracting the numbers of a single certificate.
"""

import argparse
import json
import sys
from pathlib import Path

from src.ocr.document_processor import (
    CertificateProcessor,
    DocumentOutcome,
    OutcomeStatus,
    process_batch,
)
from src.utils.config import load_config
from src.utils.logger import get_logger, setup_logging

logger = get_logger(__name__)

_SUPPORTED_EXTENSIONS = ("*.png", "*.jpg", "*.jpeg", "*.tiff", "*.tif")


def _find_documents(input_dir: Path) -> list[Path]:
    """Find all supported image files in a directory.

    Args:
        input_dir: Directory to scan for certificate images.

    Returns:
        Sorted list of image file paths.
    """
    files: list[Path] = []
    for ext in _SUPPORTED_EXTENSIONS:
        files.extend(input_dir.glob(ext))
        files.extend(input_dir.glob(ext.upper()))
    return sorted(set(files))


def process_folder(
    input_dir: Path,
    output_json: Path,
    max_workers: int | None = None,
    timeout: float | None = None,
    verbose: bool = False,
) -> dict[str, int]:
    """Scan all certificates in a folder and write the results as JSON.

    Args:
        input_dir: Directory containing certificate images.
        output_json: Path for the output JSON file.
        max_workers: Worker threads. Defaults to the configured value.
        timeout: Seconds to wait per document. Defaults to the config.
        verbose: Whether to print per-file outcomes.

    Returns:
        Summary dict with total, successful, no_data and failed counts.
    """
    config = load_config()
    processor = CertificateProcessor(config)

    files = _find_documents(input_dir)
    if not files:
        logger.warning("No documents found in %s", input_dir)
        return {"total": 0, "successful": 0, "no_data": 0, "failed": 0}

    logger.info("Found %d documents to process", len(files))

    documents = {path.name: path.read_bytes() for path in files}
    outcomes = process_batch(
        processor,
        documents,
        max_workers=max_workers or config.batch.max_workers,
        timeout=timeout if timeout is not None else config.batch.timeout_s,
    )

    if verbose:
        for i, outcome in enumerate(outcomes, 1):
            print(f"[{i}/{len(outcomes)}] {outcome.filename}: {outcome.status.value}")

    _write_json(outcomes, output_json)
    logger.info("Results written to %s", output_json)

    summary = _summarize(outcomes)
    _print_summary(summary, output_json)
    return summary


def _summarize(outcomes: list[DocumentOutcome]) -> dict[str, int]:
    successful = sum(1 for o in outcomes if o.status == OutcomeStatus.SUCCESS)
    no_data = sum(1 for o in outcomes if o.status == OutcomeStatus.NO_DATA)
    return {
        "total": len(outcomes),
        "successful": successful,
        "no_data": no_data,
        "failed": len(outcomes) - successful - no_data,
    }


def _write_json(outcomes: list[DocumentOutcome], output_path: Path) -> None:
    """Write per-document outcomes to a JSON file keyed by filename.

    Args:
        outcomes: Batch outcomes.
        output_path: Path for the output JSON file.
    """
    output_path.parent.mkdir(parents=True, exist_ok=True)
    payload = {o.filename: o.to_dict() for o in outcomes}
    output_path.write_text(json.dumps(payload, indent=2, ensure_ascii=False))


def _print_summary(summary: dict[str, int], output_json: Path) -> None:
    """Print batch processing summary to stdout.

    Args:
        summary: Counts of total, successful, no_data and failed documents.
        output_json: Path to the output JSON.
    """
    print(f"\n{'=' * 50}")
    print("Certificate Scan Complete")
    print(f"{'=' * 50}")
    print(f"Total:      {summary['total']}")
    print(f"Successful: {summary['successful']}")
    print(f"No data:    {summary['no_data']}")
    print(f"Failed:     {summary['failed']}")
    print(f"Output:     {output_json}")


def extract_single(file_path: Path) -> dict[str, object]:
    """Scan a single certificate and return structured results.

    Args:
        file_path: Path to the certificate image.

    Returns:
        Dictionary with filename and fields; ``fields`` is ``None`` when
        the registration number was not found.
    """
    config = load_config()
    processor = CertificateProcessor(config)

    results = processor.process(file_path.read_bytes(), filename=file_path.name)
    fields = (
        {name: r.to_dict() for name, r in results.items()}
        if results is not None
        else None
    )
    return {"filename": file_path.name, "fields": fields}


def main(argv: list[str] | None = None) -> None:
    """Parse CLI arguments and dispatch to the appropriate command.

    Args:
        argv: Command-line arguments (defaults to sys.argv).
    """
    parser = argparse.ArgumentParser(
        description="Certificate Number Scanner",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    batch_parser = subparsers.add_parser(
        "batch", help="Scan a folder of certificate images"
    )
    batch_parser.add_argument(
        "input_dir", type=Path, help="Input directory with certificate images"
    )
    batch_parser.add_argument(
        "-o",
        "--output",
        type=Path,
        default=Path("result.json"),
        help="Output JSON file (default: result.json)",
    )
    batch_parser.add_argument(
        "-w", "--workers", type=int, help="Number of concurrent workers"
    )
    batch_parser.add_argument(
        "--timeout", type=float, help="Seconds to wait for each document"
    )
    batch_parser.add_argument(
        "-v", "--verbose", action="store_true", help="Verbose output"
    )

    single_parser = subparsers.add_parser(
        "extract", help="Scan a single certificate image"
    )
    single_parser.add_argument("file", type=Path, help="Certificate image to scan")
    single_parser.add_argument("-o", "--output", type=Path, help="Output JSON file")

    args = parser.parse_args(argv)

    setup_logging()

    if args.command == "batch":
        if not args.input_dir.is_dir():
            print(f"Error: {args.input_dir} is not a directory", file=sys.stderr)
            sys.exit(1)
        process_folder(
            args.input_dir,
            args.output,
            args.workers,
            args.timeout,
            args.verbose,
        )
    elif args.command == "extract":
        if not args.file.exists():
            print(f"Error: {args.file} does not exist", file=sys.stderr)
            sys.exit(1)
        result = extract_single(args.file)
        output_str = json.dumps(result, indent=2, ensure_ascii=False)
        if args.output:
            args.output.parent.mkdir(parents=True, exist_ok=True)
            args.output.write_text(output_str)
            print(f"Output written to {args.output}")
        else:
            print(output_str)
    else:
        parser.print_help()
        sys.exit(0)


if __name__ == "__main__":
    main()
