import json
import logging
import os
from dataclasses import dataclass, fields
from enum import Enum
from typing import Any, Dict, Optional, Tuple

import pytesseract

logger = logging.getLogger(__name__)

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
CONFIG_DIR = os.path.join(PROJECT_ROOT, "config")
DEPENDENCIES_PATH = os.path.join(CONFIG_DIR, "dependencies.json")
SETTINGS_PATH = os.path.join(CONFIG_DIR, "settings.json")


class PdfMode(str, Enum):
    IMAGE_ONLY = "image_only"
    OCR = "ocr"
    TEXT_ONLY = "text_only"
    DRAW_BLOCKS = "draw_blocks"
    DEBUG = "debug"


class WriteTextMode(str, Enum):
    WORD = "word"
    LINE = "line"
    CHARACTER = "character"


class ImageEncoding(str, Enum):
    TIFF = "tiff"
    PNG = "png"
    JPEG = "jpeg"
    BMP = "bmp"
    CCITT_G4 = "ccitt_g4"


_ENUM_FIELDS = {
    "write_text_mode": WriteTextMode,
    "image_encoding": ImageEncoding,
}


@dataclass
class PdfSettings:
    """Page-level settings consumed by the compositor and the orchestrator."""

    dpi: int = 300
    write_text_mode: WriteTextMode = WriteTextMode.WORD
    image_encoding: ImageEncoding = ImageEncoding.JPEG
    image_quality: int = 75
    language: str = "eng"
    font_name: Optional[str] = None
    page_size: Optional[Tuple[float, float]] = None
    author: str = ""
    title: str = ""
    subject: str = ""
    keywords: str = ""
    # Text-layer tunables
    row_overlap_ratio: float = 0.5
    max_fragment_height: float = 28.0
    min_font_size: int = 2
    baseline_nudge: float = 2.0
    text_only_font_policy: str = "page_average"
    combine_rows: bool = False
    # External tools
    timeout: Optional[float] = None
    poppler_path: Optional[str] = None
    tesseract_cmd: Optional[str] = None

    def updated(self, **overrides: Any) -> "PdfSettings":
        """Return a copy with non-None overrides applied (enum names accepted)."""
        values = {f.name: getattr(self, f.name) for f in fields(self)}
        for key, value in overrides.items():
            if value is None:
                continue
            if key not in values:
                raise ValueError(f"Unknown setting: {key}")
            values[key] = _coerce(key, value)
        return PdfSettings(**values)


def _coerce(key: str, value: Any) -> Any:
    enum_cls = _ENUM_FIELDS.get(key)
    if enum_cls is not None and not isinstance(value, enum_cls):
        name = str(value).strip().lower().replace("-", "_")
        try:
            return enum_cls(name)
        except ValueError:
            choices = ", ".join(m.value for m in enum_cls)
            raise ValueError(f"Invalid value for {key}: {value!r} (expected one of: {choices})") from None
    if key == "page_size" and value is not None:
        width, height = value
        return (float(width), float(height))
    if key == "text_only_font_policy" and value not in ("page_average", "per_line"):
        raise ValueError(f"Invalid value for {key}: {value!r} (expected page_average or per_line)")
    return value


def load_settings(path: str = SETTINGS_PATH, **overrides: Any) -> PdfSettings:
    """Load PdfSettings from a JSON file (missing file means defaults)."""
    data: Dict[str, Any] = {}
    if os.path.exists(path):
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f) or {}
    else:
        logger.debug("Settings file not found at %s; using defaults", path)
    data.update({k: v for k, v in overrides.items() if v is not None})
    return PdfSettings().updated(**data)


def _resolve_path(base: str, relative: str) -> str:
    return os.path.abspath(os.path.join(base, relative))


def configure_dependencies(deps_path: str = DEPENDENCIES_PATH) -> Optional[str]:
    """Configure external dependencies (Tesseract, Poppler) from config/dependencies.json.

    Returns the Poppler binary directory if one is configured and exists.
    """
    poppler_abs: Optional[str] = None

    if not os.path.exists(deps_path):
        logger.warning("dependencies.json not found at %s", deps_path)
        return poppler_abs

    try:
        with open(deps_path, "r", encoding="utf-8") as deps_file:
            deps = json.load(deps_file) or {}
    except (OSError, ValueError) as exc:
        logger.warning("Could not load dependencies from %s: %s", deps_path, exc)
        return poppler_abs

    tess_rel = deps.get("tesseract_path")
    if tess_rel:
        tess_abs = _resolve_path(PROJECT_ROOT, tess_rel)
        if os.path.exists(tess_abs):
            pytesseract.pytesseract.tesseract_cmd = tess_abs
        else:
            logger.warning("Tesseract path from config does not exist: %s", tess_abs)

    poppler_rel = deps.get("poppler_path")
    if poppler_rel:
        candidate = _resolve_path(PROJECT_ROOT, poppler_rel)
        if os.path.isdir(candidate):
            poppler_abs = candidate
        else:
            logger.warning("Poppler path from config does not exist or is not a directory: %s", candidate)

    return poppler_abs
