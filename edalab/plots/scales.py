"""
Lookups from ggplot2 aesthetic values to matplotlib / seaborn arguments:
point shapes, line types, colours and the palettes shared between layers.
"""

from __future__ import annotations

import re
import warnings
from typing import Any, Dict, List, Optional, Tuple

import matplotlib.colors as mcolors
import pandas as pd
import seaborn as sns
from pandas.api import types as ptypes

from edalab.plots.specs import PlotSpecError, PlotWarning

# ggplot2 sizes are in mm; matplotlib marker sizes in points squared
PT = 72.27 / 25.4
STROKE = 96 / 25.4 / 2
LWD = PT * 72.0 / 96.0

# default continuous colour gradient (dark blue to light blue)
GRADIENT = sns.blend_palette(["#132B43", "#56B1F7"], as_cmap=True)

# R pch codes: (matplotlib marker, fill mode)
SHAPES: Dict[int, Tuple[str, str]] = {
    0: ("s", "open"), 1: ("o", "open"), 2: ("^", "open"), 3: ("+", "line"), 4: ("x", "line"),
    5: ("D", "open"), 6: ("v", "open"), 8: ("*", "line"),
    15: ("s", "solid"), 16: ("o", "solid"), 17: ("^", "solid"), 18: ("D", "solid"),
    19: ("o", "solid"), 20: ("o", "solid"),
    21: ("o", "fill"), 22: ("s", "fill"), 23: ("D", "fill"), 24: ("^", "fill"), 25: ("v", "fill"),
}
SHAPE_NAMES = {
    "circle": 19, "circle open": 1, "circle filled": 21, "circle small": 20,
    "square": 15, "square open": 0, "square filled": 22,
    "diamond": 18, "diamond open": 5, "diamond filled": 23,
    "triangle": 17, "triangle open": 2, "triangle filled": 24, "triangle down filled": 25,
    "plus": 3, "cross": 4, "asterisk": 8,
}
MARKERS = ["o", "^", "s", "P", "X", "D"]
LINETYPES = ["-", (0, (4, 4)), (0, (1, 3)), "-.", (0, (8, 4)), (0, (4, 2, 1, 2, 1, 2))]
LINETYPE_NAMES = {"solid": "-", "dashed": (0, (4, 4)), "dotted": (0, (1, 3)), "dotdash": "-.",
                  "longdash": (0, (8, 4)), "twodash": (0, (2, 2, 6, 2)), "blank": "None"}

_GREY = re.compile(r"^gr[ae]y(\d{1,3})$")


def color_value(color: Any) -> Any:
    """matplotlib colour, R "greyNN" names, or "NA" (no colour -> "none")."""
    if color is None:
        return None
    if isinstance(color, str):
        if color.upper() in ("NA", "NONE"):
            return "none"
        m = _GREY.match(color.strip().lower())
        if m:
            level = min(int(m.group(1)), 100) / 100.0
            return (level, level, level)
    if not mcolors.is_color_like(color):
        raise PlotSpecError(f"Unknown colour: {color}")
    return color


def shape_marker(shape: Any) -> Tuple[str, str]:
    if isinstance(shape, str):
        if shape in SHAPE_NAMES:
            return SHAPES[SHAPE_NAMES[shape]]
        raise PlotSpecError(f"Unknown shape: {shape}")
    code = int(shape)
    if code not in SHAPES:
        raise PlotSpecError(f"Unsupported shape: {shape}")
    return SHAPES[code]


def linetype_style(linetype: Any) -> Any:
    if linetype is None:
        return "-"
    if isinstance(linetype, int):
        return LINETYPES[linetype % len(LINETYPES)]
    try:
        return LINETYPE_NAMES[linetype]
    except KeyError:
        raise PlotSpecError(f"Unknown linetype: {linetype}") from None


def is_discrete(values: pd.Series) -> bool:
    return not ptypes.is_numeric_dtype(values) or ptypes.is_bool_dtype(values)


def levels_of(values: pd.Series) -> List[Any]:
    """Factor levels in order; sorted unique values for everything else."""
    if isinstance(values.dtype, pd.CategoricalDtype):
        return list(values.cat.categories)
    unique = values.dropna().unique().tolist()
    try:
        return sorted(unique)
    except TypeError:
        return unique


def as_factor(values: pd.Series, levels: Optional[List[Any]] = None) -> pd.Series:
    """Discrete values as a categorical, so every panel places levels alike."""
    levels = levels_of(values) if levels is None else levels
    ordered = isinstance(values.dtype, pd.CategoricalDtype) and values.cat.ordered
    return pd.Series(pd.Categorical(values, categories=levels, ordered=ordered), index=values.index, name=values.name)


def discrete_palette(levels: List[Any]) -> Dict[Any, Any]:
    """Evenly spaced hues, one per level, as ggplot2's default discrete scale."""
    colors = sns.color_palette("husl", len(levels)) if levels else []
    return dict(zip(levels, colors))


def warn_discrete(aesthetic: str) -> None:
    warnings.warn(f"Using {aesthetic} for a discrete variable is not advised.", PlotWarning, stacklevel=4)
