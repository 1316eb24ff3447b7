"""High-level pipeline orchestration: scanned document → searchable PDF."""

from .process import (
    JobReport,
    SearchablePdfCompressor,
    print_progress_bar,
)

__all__ = [
    "JobReport",
    "SearchablePdfCompressor",
    "print_progress_bar",
]
