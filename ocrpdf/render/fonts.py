"""Font lookup for the PDF text layer.

A configured ``font_name`` is searched like the desktop fonts of the host
(FONT_PATH, the Windows fonts folder, common Unix font folders, the working
directory and ``config/fonts``) and registered with reportlab. When nothing is
found the built-in Helvetica base font is used.
"""

from __future__ import annotations

import logging
import os
import threading
from typing import List, Optional

from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFError, TTFont

from ocrpdf.config import CONFIG_DIR

logger = logging.getLogger(__name__)

BASE_FONT = "Helvetica"
_CONFIG_FONTS_DIR = os.path.join(CONFIG_DIR, "fonts")
_register_lock = threading.Lock()


def _candidate_dirs() -> List[str]:
    dirs: List[str] = []
    env_paths = os.environ.get("FONT_PATH", "")
    dirs.extend(p for p in env_paths.split(os.pathsep) if p.strip())
    windir = os.environ.get("WINDIR") or os.environ.get("SystemRoot")
    if windir:
        dirs.append(os.path.join(windir, "Fonts"))
    dirs.extend([
        "/usr/share/fonts",
        "/usr/local/share/fonts",
        os.path.expanduser("~/.fonts"),
        "/Library/Fonts",
        os.getcwd(),
        _CONFIG_FONTS_DIR,
    ])
    return dirs


def find_font_path(name: str) -> Optional[str]:
    if os.path.isabs(name) and os.path.exists(name):
        return name
    wanted = name.lower()
    for base in _candidate_dirs():
        if not os.path.isdir(base):
            continue
        for root, _dirs, files in os.walk(base):
            for fname in files:
                if fname.lower() == wanted:
                    return os.path.join(root, fname)
    return None


def resolve_font(font_name: Optional[str]) -> str:
    """Register ``font_name`` with reportlab and return the name to draw with."""
    if not font_name:
        return BASE_FONT
    face = os.path.splitext(os.path.basename(font_name))[0]
    with _register_lock:
        if face in pdfmetrics.getRegisteredFontNames():
            return face
        path = find_font_path(font_name)
        if path is None:
            logger.warning("Font %r not found; falling back to %s", font_name, BASE_FONT)
            return BASE_FONT
        try:
            pdfmetrics.registerFont(TTFont(face, path))
        except (TTFError, OSError) as exc:
            logger.warning("Font %r could not be loaded (%s); falling back to %s", path, exc, BASE_FONT)
            return BASE_FONT
    return face
