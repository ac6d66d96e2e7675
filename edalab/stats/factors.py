"""Vector helpers used while exploring: binning, factor reordering, conditionals."""

from __future__ import annotations

from typing import Any, Callable, Optional, Union

import numpy as np
import pandas as pd

_SUMMARIES = {
    "median": np.nanmedian,
    "mean": np.nanmean,
    "min": np.nanmin,
    "max": np.nanmax,
    "sum": np.nansum,
    "size": len,
}


def _fmt(value: float) -> str:
    return f"{value:.3g}"


def cut_width(
    x: Any,
    width: float,
    center: Optional[float] = None,
    boundary: Optional[float] = None,
    closed: str = "right",
) -> pd.Series:
    """Bin a continuous variable into intervals of equal width.

    Without a boundary or center the bins are centred on multiples of width,
    so the smallest and largest values fall in the outer half of their bins.
    Returns an ordered categorical labelled like "[0.15,0.25]" / "(0.25,0.35]".
    """
    if width <= 0:
        raise ValueError("width must be positive")
    if closed not in ("right", "left"):
        raise ValueError("closed must be 'right' or 'left'")
    if boundary is not None and center is not None:
        raise ValueError("Only one of boundary and center may be specified")

    series = pd.Series(x, dtype=float) if not isinstance(x, pd.Series) else x.astype(float)
    finite = series[np.isfinite(series)]
    if finite.empty:
        return pd.Series(pd.Categorical([None] * len(series), ordered=True), index=series.index)

    if boundary is None:
        boundary = width / 2 if center is None else center - width / 2
    shift = np.floor((finite.min() - boundary) / width)
    origin = boundary + shift * width
    # small correction so max == edge does not open an extra bin
    top = finite.max() + (1 - 1e-08) * width
    n_bins = max(1, int(np.floor((top - origin) / width)))
    breaks = origin + width * np.arange(n_bins + 1)

    right = closed == "right"
    binned = pd.cut(series, breaks, right=right, include_lowest=True)
    labels = []
    for i in range(n_bins):
        lo, hi = _fmt(breaks[i]), _fmt(breaks[i + 1])
        if right:
            labels.append(f"[{lo},{hi}]" if i == 0 else f"({lo},{hi}]")
        else:
            labels.append(f"[{lo},{hi}]" if i == n_bins - 1 else f"[{lo},{hi})")
    codes = binned.cat.codes.to_numpy()
    return pd.Series(
        pd.Categorical.from_codes(codes, categories=labels, ordered=True),
        index=series.index,
        name=getattr(x, "name", None),
    )


def fct_reorder(
    f: Any,
    x: Any,
    fun: Union[str, Callable[[np.ndarray], float]] = "median",
    descending: bool = False,
) -> pd.Series:
    """Reorder the levels of f by a summary of x within each level."""
    f = pd.Series(f).reset_index(drop=True)
    x = pd.Series(x, dtype=float).reset_index(drop=True)
    summarise = _SUMMARIES[fun] if isinstance(fun, str) else fun
    keys = {}
    for level, values in x.groupby(f, observed=True, sort=False):
        keys[level] = summarise(values.to_numpy())
    levels = sorted(keys, key=lambda lv: (np.isnan(keys[lv]), keys[lv]), reverse=False)
    if descending:
        levels = list(reversed(levels))
    return pd.Series(pd.Categorical(f, categories=levels), name=f.name)


def between(x: Any, left: float, right: float) -> pd.Series:
    """Inclusive range test; missing values stay False."""
    s = pd.Series(x)
    return s.ge(left) & s.le(right)


def if_else(condition: Any, true: Any, false: Any) -> pd.Series:
    """Vectorised if/else that propagates missing conditions as missing values."""
    cond = pd.Series(condition)
    out = pd.Series(np.where(cond.fillna(False).astype(bool), true, false), index=cond.index)
    missing = cond.isna()
    if not missing.any():
        return out
    if pd.api.types.is_numeric_dtype(out) and not pd.api.types.is_bool_dtype(out):
        out = out.astype(float)
        out[missing] = np.nan
    else:
        # strings and booleans keep None for NA
        out = out.astype(object)
        out[missing] = None
    return out
