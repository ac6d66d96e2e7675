"""Statistical helpers used by summaries and plots."""

from .descriptive import DescriptiveStats
from .factors import between, cut_width, fct_reorder, if_else

__all__ = [
    "DescriptiveStats",
    "between",
    "cut_width",
    "fct_reorder",
    "if_else",
]
