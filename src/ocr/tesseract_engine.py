"""Tesseract OCR session with region recognition and line grouping.

A session binds a language and an optional character whitelist to the
Tesseract engine and recognizes rectangular regions of a page image,
returning text lines with bounding boxes in source-image coordinates.
"""

import hashlib
import io
from dataclasses import dataclass

import pytesseract
from PIL import Image, UnidentifiedImageError
from pytesseract import TesseractError, TesseractNotFoundError

from src.utils.logger import get_logger

from .errors import (
    EngineInitError,
    InvalidImageError,
    RecognitionError,
    SessionClosedError,
)

logger = get_logger(__name__)


@dataclass(frozen=True)
class Rectangle:
    """Axis-aligned pixel rectangle in source-image coordinates."""

    left: int
    top: int
    width: int
    height: int

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise ValueError(
                f"Rectangle must have positive size, got {self.width}x{self.height}"
            )

    @classmethod
    def from_corners(cls, x0: int, y0: int, x1: int, y1: int) -> "Rectangle":
        """Build a rectangle from its top-left and bottom-right corners."""
        return cls(left=x0, top=y0, width=x1 - x0, height=y1 - y0)

    @property
    def right(self) -> int:
        return self.left + self.width

    @property
    def bottom(self) -> int:
        return self.top + self.height

    def to_dict(self) -> dict[str, int]:
        return {
            "left": self.left,
            "top": self.top,
            "width": self.width,
            "height": self.height,
        }


@dataclass
class OCRLine:
    """A single recognized text line with its bounding box."""

    text: str
    bbox: Rectangle


class OCRSession:
    """Reusable Tesseract session for one language and whitelist.

    Sessions are not safe for overlapping ``recognize`` calls; give every
    concurrent worker its own session.

    Args:
        language: Tesseract language code, ``+``-joined for several.
        whitelist: Characters the engine is restricted to, if any.
        psm: Tesseract page segmentation mode.
        auto_rotate: Whether to rotate the page upright using OSD first.
    """

    def __init__(
        self,
        language: str,
        whitelist: str | None = None,
        psm: int = 6,
        auto_rotate: bool = True,
    ) -> None:
        self.language = language
        self.whitelist = whitelist
        self.psm = psm
        self.auto_rotate = auto_rotate
        self._closed = False
        self._page_key: str | None = None
        self._page: Image.Image | None = None

    @property
    def closed(self) -> bool:
        return self._closed

    def _tesseract_config(self) -> str:
        config = f"--psm {self.psm} -c preserve_interword_spaces=1"
        if self.whitelist:
            config += f" -c tessedit_char_whitelist={self.whitelist}"
        return config

    def recognize(self, image_bytes: bytes, rectangle: Rectangle) -> list[OCRLine]:
        """Recognize text lines inside a rectangle of the page image.

        The rectangle is clamped to the page; a rectangle that lies
        entirely outside it yields no lines.

        Args:
            image_bytes: Encoded page image (PNG, JPEG, TIFF, ...).
            rectangle: Region to recognize, in page pixel coordinates.

        Returns:
            Lines in engine reading order with page-coordinate boxes.

        Raises:
            SessionClosedError: If the session was closed.
            InvalidImageError: If the bytes are not a readable image.
            RecognitionError: If Tesseract fails on the region.
        """
        if self._closed:
            raise SessionClosedError("recognize called on a closed OCR session")

        page = self._load_page(image_bytes)
        x0 = max(0, rectangle.left)
        y0 = max(0, rectangle.top)
        x1 = min(page.width, rectangle.right)
        y1 = min(page.height, rectangle.bottom)
        if x1 <= x0 or y1 <= y0:
            logger.debug("Region %s lies outside the page", rectangle)
            return []

        region = page.crop((x0, y0, x1, y1))
        try:
            data = pytesseract.image_to_data(
                region,
                lang=self.language,
                config=self._tesseract_config(),
                output_type=pytesseract.Output.DICT,
            )
        except TesseractError as exc:
            raise RecognitionError(f"Tesseract failed on {rectangle}: {exc}") from exc

        lines = _group_lines(data, offset_x=x0, offset_y=y0)
        logger.debug("Recognized %d lines in %s", len(lines), rectangle)
        return lines

    def close(self) -> None:
        """Release the session. Closing twice is a no-op."""
        if self._closed:
            return
        self._closed = True
        self._page = None
        self._page_key = None
        logger.debug("Closed OCR session (%s)", self.language)

    def __enter__(self) -> "OCRSession":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _load_page(self, image_bytes: bytes) -> Image.Image:
        """Decode (and optionally rotate) a page, cached by content digest."""
        key = hashlib.sha1(image_bytes).hexdigest()
        if key == self._page_key and self._page is not None:
            return self._page

        try:
            page = Image.open(io.BytesIO(image_bytes))
            page.load()
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as exc:
            raise InvalidImageError(f"Cannot decode image: {exc}") from exc

        if page.mode not in ("RGB", "L"):
            page = page.convert("RGB")
        if self.auto_rotate:
            page = _rotate_upright(page)

        self._page_key = key
        self._page = page
        return page


def _rotate_upright(page: Image.Image) -> Image.Image:
    """Rotate a page upright using Tesseract orientation detection.

    Falls back to the unrotated page when OSD cannot decide.
    """
    try:
        osd = pytesseract.image_to_osd(page, output_type=pytesseract.Output.DICT)
    except TesseractError as exc:
        logger.warning("Orientation detection failed, keeping page as is: %s", exc)
        return page

    angle = int(osd.get("rotate", 0))
    if angle == 0:
        return page
    logger.debug("Rotating page by %d degrees clockwise", angle)
    # PIL rotates counter-clockwise
    return page.rotate(-angle, expand=True)


def _group_lines(data: dict, offset_x: int, offset_y: int) -> list[OCRLine]:
    """Group ``image_to_data`` word rows into lines, preserving order."""
    grouped: dict[tuple[int, int, int], list[int]] = {}
    for i in range(len(data["text"])):
        if not str(data["text"][i]).strip():
            continue
        key = (data["block_num"][i], data["par_num"][i], data["line_num"][i])
        grouped.setdefault(key, []).append(i)

    lines: list[OCRLine] = []
    for indices in grouped.values():
        text = " ".join(str(data["text"][i]).strip() for i in indices)
        x0 = min(data["left"][i] for i in indices)
        y0 = min(data["top"][i] for i in indices)
        x1 = max(data["left"][i] + max(data["width"][i], 1) for i in indices)
        y1 = max(data["top"][i] + max(data["height"][i], 1) for i in indices)
        lines.append(
            OCRLine(
                text=text,
                bbox=Rectangle.from_corners(
                    x0 + offset_x, y0 + offset_y, x1 + offset_x, y1 + offset_y
                ),
            )
        )
    return lines


def open_session(
    language: str,
    whitelist: str | None = None,
    *,
    psm: int = 6,
    auto_rotate: bool = True,
    tesseract_cmd: str | None = None,
) -> OCRSession:
    """Start an OCR session after checking the engine can serve it.

    Args:
        language: Tesseract language code, ``+``-joined for several.
        whitelist: Optional character whitelist, e.g. ``"0123456789"``.
        psm: Tesseract page segmentation mode.
        auto_rotate: Rotate pages upright with OSD before cropping.
        tesseract_cmd: Path to the Tesseract executable, if not on PATH.

    Returns:
        An open session.

    Raises:
        EngineInitError: If Tesseract is missing or lacks language data.
    """
    if tesseract_cmd:
        pytesseract.pytesseract.tesseract_cmd = tesseract_cmd

    try:
        available = set(pytesseract.get_languages(config=""))
    except (TesseractNotFoundError, TesseractError) as exc:
        raise EngineInitError(f"Tesseract is not available: {exc}") from exc

    missing = [lang for lang in language.split("+") if lang not in available]
    if missing:
        raise EngineInitError(
            f"Missing Tesseract language data: {', '.join(missing)}"
        )

    logger.debug("Opened OCR session lang=%s whitelist=%s", language, whitelist)
    return OCRSession(language, whitelist, psm=psm, auto_rotate=auto_rotate)
