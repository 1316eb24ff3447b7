"""Page rendering: compositor, debug overlays and font lookup."""

from .compositor import PageCompositor, PageResult
from .draw import draw_blocks
from .fonts import resolve_font

__all__ = [
    "PageCompositor",
    "PageResult",
    "draw_blocks",
    "resolve_font",
]
