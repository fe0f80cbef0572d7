"""
ocr_service.py — License plate recognition from photos

EasyOCR reads the image; regex patterns pull a plate-shaped token out of
the raw text, which is then normalized and validated.

Business Rules:
- The EasyOCR reader is created once, on first use (model load is slow)
- Recognition is restricted to A-Z and 0-9
- Confidence is the mean of the fragment confidences, 0-1
- Plate candidates must be 4-8 characters after stripping spaces/dashes
- Engine failures raise OCREngineError; "no plate found" is a normal
  unsuccessful result, not an exception

Called by: routers/ocr.py, patrol/scanner.py
Depends on: easyocr, utils/license_plate
"""

import base64
import binascii
import re
import threading
import time
from dataclasses import asdict, dataclass

from loguru import logger

from ..config import settings
from ..utils.license_plate import normalize_license_plate, validate_license_plate

PLATE_ALLOWLIST = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"

PLATE_PATTERNS = [
    re.compile(r"\b([A-Z]{2,3}[\s-]?[0-9]{3,4})\b"),  # ABC 1234, ABC-123
    re.compile(r"\b([0-9]{3,4}[\s-]?[A-Z]{2,3})\b"),  # 1234 ABC, 123-ABC
    re.compile(r"\b([A-Z]{1,3}[0-9]{1,4}[A-Z]{0,3})\b"),  # A123BC
    re.compile(r"\b([0-9]{1,4}[A-Z]{1,3}[0-9]{0,4})\b"),  # 123ABC
    re.compile(r"\b([A-Z0-9]{5,8})\b"),
]


class OCREngineError(Exception):
    """The OCR engine could not be loaded or failed to read the image."""


class InvalidImageError(ValueError):
    """Image payload is missing or not a base64 image data URL."""


@dataclass
class OCRResult:
    success: bool
    license_plate: str | None
    normalized_plate: str | None
    confidence: float
    raw_text: str
    error: str | None = None
    processing_time_ms: int = 0
    source: str = "server"

    def to_dict(self) -> dict:
        return asdict(self)


_reader = None
_reader_lock = threading.Lock()


def get_reader():
    """Return the shared EasyOCR reader, creating it on first call."""
    global _reader
    if _reader is None:
        with _reader_lock:
            if _reader is None:
                try:
                    import easyocr

                    langs = [lang.strip() for lang in settings.ocr_languages.split(",") if lang.strip()]
                    _reader = easyocr.Reader(langs, gpu=settings.ocr_gpu, verbose=False)
                    logger.info("EasyOCR ready with langs: {}", langs)
                except Exception as e:
                    raise OCREngineError(f"OCR engine unavailable: {e}") from e
    return _reader


def extract_license_plate_from_text(text: str) -> str | None:
    cleaned = re.sub(r"[^A-Z0-9\s-]", "", (text or "").upper()).strip()

    for pattern in PLATE_PATTERNS:
        match = pattern.search(cleaned)
        if match:
            candidate = re.sub(r"[\s-]", "", match.group(1))
            if 4 <= len(candidate) <= 8:
                return candidate

    fallback = re.search(r"[A-Z0-9]{4,8}", re.sub(r"\s+", "", cleaned))
    return fallback.group(0) if fallback else None


def decode_data_url(image: str | None) -> bytes:
    if not image or not isinstance(image, str):
        raise InvalidImageError("Image data is required")
    if not image.startswith("data:image/"):
        raise InvalidImageError("Invalid image format. Expected data URL.")
    header, _, payload = image.partition(",")
    if ";base64" not in header or not payload:
        raise InvalidImageError("Invalid image format. Expected data URL.")
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidImageError("Invalid image format. Expected data URL.") from e


def read_text(image_bytes: bytes) -> tuple[str, float]:
    """Run OCR; return (joined text, mean confidence 0-1)."""
    reader = get_reader()
    try:
        results = reader.readtext(image_bytes, detail=1, paragraph=False, allowlist=PLATE_ALLOWLIST)
    except Exception as e:
        raise OCREngineError(f"OCR processing failed: {e}") from e
    if not results:
        return "", 0.0
    texts = [text for _, text, _ in results]
    confidences = [float(conf) for _, _, conf in results]
    return " ".join(texts).strip(), sum(confidences) / len(confidences)


def recognize_plate(image_bytes: bytes, source: str = "server") -> OCRResult:
    started = time.monotonic()

    def _elapsed() -> int:
        return int((time.monotonic() - started) * 1000)

    raw_text, confidence = read_text(image_bytes)
    plate = extract_license_plate_from_text(raw_text)
    if not plate:
        return OCRResult(
            success=False,
            license_plate=None,
            normalized_plate=None,
            confidence=0.0,
            raw_text=raw_text,
            error="No license plate pattern detected in image",
            processing_time_ms=_elapsed(),
            source=source,
        )

    normalized = normalize_license_plate(plate)
    is_valid, error = validate_license_plate(normalized)
    result = OCRResult(
        success=is_valid,
        license_plate=plate,
        normalized_plate=normalized,
        confidence=round(confidence, 4),
        raw_text=raw_text,
        error=None if is_valid else (error or "Invalid license plate format"),
        processing_time_ms=_elapsed(),
        source=source,
    )
    logger.debug("OCR read {!r} -> {} ({:.2f})", raw_text, normalized, confidence)
    return result
