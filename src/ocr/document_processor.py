"""Certificate processing: field extraction over one shared OCR session.

Runs the region search once per configured field, applies the mandatory
registration number rule and assembles the per-document result. Batches
of documents are processed concurrently, one session per document.
"""

from collections.abc import Mapping
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
from enum import StrEnum

from src.extraction.line_matcher import NumberRule
from src.extraction.region_search import NumberResult, search_field
from src.utils.config import AppConfig
from src.utils.logger import get_logger

from .tesseract_engine import Rectangle, open_session

logger = get_logger(__name__)


@dataclass(frozen=True)
class FieldSpec:
    """Format rule and initial search window for one field."""

    rule: NumberRule
    initial_rect: Rectangle


def field_specs_from_config(config: AppConfig) -> dict[str, FieldSpec]:
    """Build field specs from the ``fields`` section of the config."""
    return {
        name: FieldSpec(
            rule=NumberRule(length=cfg.length, prefix=cfg.prefix),
            initial_rect=Rectangle(
                left=cfg.rect.left,
                top=cfg.rect.top,
                width=cfg.rect.width,
                height=cfg.rect.height,
            ),
        )
        for name, cfg in config.fields.items()
    }


def mandatory_field_missing(
    mandatory_field: str, results: Mapping[str, NumberResult | None]
) -> bool:
    """A certificate without its registration number carries no usable data."""
    return results.get(mandatory_field) is None


class CertificateProcessor:
    """Extracts the numeric fields of a scanned certificate.

    Args:
        config: Application configuration object.
    """

    def __init__(self, config: AppConfig) -> None:
        self.config = config
        self.field_rules = field_specs_from_config(config)
        self.mandatory_field = config.mandatory_field

    def process(
        self,
        image_bytes: bytes,
        field_rules: Mapping[str, FieldSpec] | None = None,
        filename: str = "document",
    ) -> dict[str, NumberResult] | None:
        """Search every field of one certificate image.

        The mandatory field is searched first; when it is not found the
        optional fields are skipped and ``None`` is returned.

        Args:
            image_bytes: Encoded page image.
            field_rules: Fields to search. Defaults to the configured ones.
            filename: Display name used in log messages.

        Returns:
            Mapping of field name to result for every field found, or
            ``None`` if the mandatory field was not found.
        """
        rules = dict(field_rules if field_rules is not None else self.field_rules)
        if self.mandatory_field not in rules:
            raise ValueError(
                f"Mandatory field {self.mandatory_field!r} has no rule configured"
            )
        order = [self.mandatory_field] + [
            name for name in rules if name != self.mandatory_field
        ]

        logger.info("Processing certificate: %s", filename)
        ocr = self.config.ocr
        session = open_session(
            ocr.language,
            ocr.whitelist or None,
            psm=ocr.psm,
            auto_rotate=ocr.auto_rotate,
            tesseract_cmd=ocr.tesseract_cmd,
        )
        results: dict[str, NumberResult] = {}
        try:
            for name in order:
                spec = rules[name]
                result = search_field(
                    session,
                    image_bytes,
                    spec.rule,
                    spec.initial_rect,
                    max_iterations=self.config.search.max_iterations,
                    expand_step=self.config.search.expand_step,
                )
                if result is not None:
                    results[name] = result
                if name == self.mandatory_field and mandatory_field_missing(
                    name, results
                ):
                    logger.warning(
                        "No %s found in %s, discarding document", name, filename
                    )
                    return None
        finally:
            session.close()

        logger.info(
            "Extracted %d of %d fields from %s", len(results), len(rules), filename
        )
        return results


class OutcomeStatus(StrEnum):
    """Per-document outcome of a batch run."""

    SUCCESS = "success"
    NO_DATA = "no_data"
    FAILED = "failed"
    TIMEOUT = "timeout"


@dataclass
class DocumentOutcome:
    """Result of processing one document in a batch."""

    filename: str
    status: OutcomeStatus
    fields: dict[str, NumberResult] = field(default_factory=dict)
    error: str | None = None

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {"status": self.status.value}
        if self.error is not None:
            data["error"] = self.error
        data["fields"] = {name: r.to_dict() for name, r in self.fields.items()}
        return data


def process_batch(
    processor: CertificateProcessor,
    documents: Mapping[str, bytes],
    max_workers: int = 2,
    timeout: float | None = None,
) -> list[DocumentOutcome]:
    """Process several certificates concurrently.

    Every document runs on its own worker with its own OCR session. The
    timeout bounds how long the caller waits for each document; a document
    that has not started when its wait expires is cancelled, while work
    that is already running is not interrupted and still closes its session.

    Args:
        processor: Processor shared by the workers (it holds no session).
        documents: Mapping of filename to encoded image bytes.
        max_workers: Number of worker threads.
        timeout: Seconds to wait for each document, or ``None``.

    Returns:
        One outcome per document, in input order.
    """
    executor = ThreadPoolExecutor(max_workers=max_workers)
    futures: dict[str, Future] = {
        name: executor.submit(processor.process, content, filename=name)
        for name, content in documents.items()
    }

    outcomes: list[DocumentOutcome] = []
    try:
        for name, future in futures.items():
            outcomes.append(_collect(name, future, timeout))
    finally:
        executor.shutdown(wait=False, cancel_futures=True)
    return outcomes


def _collect(name: str, future: Future, timeout: float | None) -> DocumentOutcome:
    """Wait for one document and translate its result into an outcome."""
    try:
        result = future.result(timeout=timeout)
    except FutureTimeoutError:
        # only succeeds for documents still queued
        cancelled = future.cancel()
        logger.error(
            "Timed out waiting for %s after %ss (cancelled=%s)", name, timeout, cancelled
        )
        error = f"timed out after {timeout}s"
        if cancelled:
            error += ", not started"
        return DocumentOutcome(
            filename=name, status=OutcomeStatus.TIMEOUT, error=error
        )
    except Exception as exc:
        logger.error("Failed to process %s: %s", name, exc)
        return DocumentOutcome(filename=name, status=OutcomeStatus.FAILED, error=str(exc))

    if result is None:
        return DocumentOutcome(filename=name, status=OutcomeStatus.NO_DATA)
    return DocumentOutcome(filename=name, status=OutcomeStatus.SUCCESS, fields=result)
