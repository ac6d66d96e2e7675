"""
Draw a plot specification with seaborn.

Per plot:
1. resolve each layer's mapping against its data (global mapping inherited,
   local mapping wins, local data overrides plot data) into columns named
   after the aesthetic: "x", "y", "color", "fill", ...
2. drop rows with missing required aesthetics
3. give discrete variables one set of levels across layers and panels, so
   seaborn places categories and picks colours the same way everywhere
4. lay out facet panels and hand every layer, per panel, to the seaborn
   function for its geom (histplot, kdeplot, boxplot, regplot, ...)
5. labels, legends and coordinate limits
"""

from __future__ import annotations

import logging
import math
import warnings
from dataclasses import dataclass, field
from io import BytesIO
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd
import seaborn as sns
from matplotlib.figure import Figure

from edalab.config import settings
from edalab.plots.scales import (
    GRADIENT,
    LWD,
    MARKERS,
    PT,
    STROKE,
    as_factor,
    color_value,
    discrete_palette,
    is_discrete,
    levels_of,
    linetype_style,
    shape_marker,
    warn_discrete,
)
from edalab.plots.specs import Layer, MissingValuesWarning, PlotSpec, PlotSpecError, stat_variable
from edalab.stats.descriptive import DescriptiveStats

logger = logging.getLogger(__name__)

NON_POSITION = ("color", "fill", "shape", "size", "alpha", "linetype")

# required aesthetics by stat, and by geom for stat="identity"
_STAT_REQUIRES = {
    "count": ("x",), "bin": ("x",), "density": ("x",), "sum": ("x", "y"), "smooth": ("x", "y"),
    "bin2d": ("x", "y"), "binhex": ("x", "y"), "density_ridges": ("x", "y"), "summary": ("x", "y"),
}
_GEOM_REQUIRES = {
    "point": ("x", "y"), "line": ("x", "y"), "bar": ("x", "y"), "tile": ("x", "y"),
    "pointrange": ("x", "y"),
}
_STAT_Y_TITLE = {"count": "count", "bin": "count", "density": "density"}
_MULTIPLE = {"stack": "stack", "fill": "fill", "dodge": "dodge", "identity": "layer"}
_SMOOTH_COLOR = "#3366FF"
_BAR_FILL = "#595959"


@dataclass
class _Built:
    layer: Layer
    frame: pd.DataFrame
    titles: Dict[str, str] = field(default_factory=dict)
    after: Dict[str, str] = field(default_factory=dict)


@dataclass
class _Scales:
    """Level orderings and lookups shared by every layer and panel."""

    palettes: Dict[str, Dict[Any, Any]] = field(default_factory=dict)
    markers: Dict[Any, str] = field(default_factory=dict)
    dashes: Dict[Any, Any] = field(default_factory=dict)
    titles: Dict[str, str] = field(default_factory=dict)
    flip: bool = False

    def palette(self, aesthetic: str) -> Any:
        return self.palettes.get(aesthetic, GRADIENT)


@dataclass
class _Layout:
    nrow: int = 1
    ncol: int = 1
    variables: List[str] = field(default_factory=list)
    keys: List[Tuple[Any, ...]] = field(default_factory=lambda: [()])
    cells: List[Tuple[int, int]] = field(default_factory=lambda: [(0, 0)])
    kind: str = "none"


def _as_spec(plot: Any) -> PlotSpec:
    return plot if isinstance(plot, PlotSpec) else plot.spec


# ============================================================================
# 1-2. mapping resolution and missing values
# ============================================================================

def _resolve(mapping: Dict[str, Any], data: pd.DataFrame) -> Tuple[pd.DataFrame, Dict[str, str], Dict[str, str]]:
    frame = pd.DataFrame(index=data.index)
    titles: Dict[str, str] = {}
    after: Dict[str, str] = {}
    for aesthetic, value in mapping.items():
        var = stat_variable(value)
        if var is not None:
            after[aesthetic] = var
            titles[aesthetic] = var
        elif isinstance(value, str) and value in data.columns:
            frame[aesthetic] = data[value]
            titles[aesthetic] = value
        elif isinstance(value, (pd.Series, np.ndarray, list)):
            vector = value.reset_index(drop=True) if isinstance(value, pd.Series) else pd.Series(value)
            if len(vector) != len(data):
                raise PlotSpecError(
                    f"Aesthetics must be either length 1 or the same as the data ({len(data)}): {aesthetic}"
                )
            vector.index = data.index
            frame[aesthetic] = vector
            titles[aesthetic] = str(getattr(value, "name", None) or aesthetic)
        else:
            # a constant inside aes() is a one-level variable
            frame[aesthetic] = pd.Series([value] * len(data), index=data.index,
                                         dtype=object if isinstance(value, str) else None)
            titles[aesthetic] = str(value)
    return frame, titles, after


def _build_layers(spec: PlotSpec) -> List[_Built]:
    plot_data = spec.data if spec.data is not None else pd.DataFrame()
    facet_vars = spec.facet.variables() if spec.facet else []
    built = []
    for layer in spec.layers:
        data = layer.data if layer.data is not None else plot_data
        data = data.reset_index(drop=True)
        mapping = spec.mapping.merged(layer.mapping) if layer.inherit_aes else layer.mapping
        frame, titles, after = _resolve(mapping.mapped(), data)
        for var in facet_vars:
            if var in data.columns:
                frame[f"facet:{var}"] = data[var]
        _check_required(layer, frame, after)
        built.append(_Built(layer, frame, titles, after))
    return built


def _check_required(layer: Layer, frame: pd.DataFrame, after: Dict[str, str]) -> None:
    present = set(frame.columns) | set(after)
    if layer.stat == "boxplot":
        if not ({"x", "y"} & present):
            raise PlotSpecError(f"{layer.label}() requires the following missing aesthetics: x or y")
        return
    required = _STAT_REQUIRES.get(layer.stat) if layer.stat != "identity" else _GEOM_REQUIRES.get(layer.geom, ("x", "y"))
    missing = [a for a in required if a not in present]
    if missing:
        raise PlotSpecError(f"{layer.label}() requires the following missing aesthetics: {' and '.join(missing)}")


def _drop_missing(b: _Built) -> None:
    layer, frame = b.layer, b.frame
    check = [c for c in ("x", "y") if c in frame.columns]
    if layer.geom == "point" and layer.stat == "identity":
        check += [c for c in ("color", "size", "shape") if c in frame.columns]
    if not check or frame.empty:
        return
    bad = np.zeros(len(frame), dtype=bool)
    for c in check:
        col = frame[c]
        bad |= col.isna().to_numpy()
        if c in ("x", "y") and pd.api.types.is_numeric_dtype(col) and not pd.api.types.is_bool_dtype(col):
            bad |= ~np.isfinite(col.to_numpy(dtype=float, na_value=np.nan))
    n = int(bad.sum())
    if not n:
        return
    b.frame = frame[~bad].copy()
    if layer.na_rm:
        return
    if layer.stat == "identity":
        msg = f"Removed {n} rows containing missing values or values outside the scale range (`{layer.label}()`)."
    else:
        msg = f"Removed {n} rows containing non-finite outside the scale range (`stat_{layer.stat}()`)."
    warnings.warn(msg, MissingValuesWarning, stacklevel=4)


def _flip(b: _Built) -> None:
    swap = {"x": "y", "y": "x"}
    b.frame = b.frame.rename(columns=swap)
    b.titles = {swap.get(k, k): v for k, v in b.titles.items()}
    b.after = {swap.get(k, k): v for k, v in b.after.items()}


# ============================================================================
# 3. shared levels
# ============================================================================

def _train(built: List[_Built], flip: bool) -> _Scales:
    scales = _Scales(flip=flip)
    for aesthetic in ("x", "y", "group") + NON_POSITION:
        columns = [b.frame[aesthetic] for b in built if aesthetic in b.frame.columns and not b.frame.empty]
        if not columns or not all(is_discrete(c) for c in columns):
            if columns and aesthetic == "shape":
                raise PlotSpecError("A continuous variable cannot be mapped to shape")
            continue
        levels: List[Any] = []
        for c in columns:
            levels.extend(v for v in levels_of(c) if v not in levels)
        for b in built:
            if aesthetic in b.frame.columns:
                b.frame[aesthetic] = as_factor(b.frame[aesthetic], levels)
        if aesthetic in ("color", "fill"):
            scales.palettes[aesthetic] = discrete_palette(levels)
        elif aesthetic == "shape":
            if len(levels) > len(MARKERS):
                raise PlotSpecError(f"The shape palette can deal with a maximum of {len(MARKERS)} discrete values")
            scales.markers = {lv: MARKERS[i] for i, lv in enumerate(levels)}
        elif aesthetic == "linetype":
            scales.dashes = {lv: linetype_style(i) for i, lv in enumerate(levels)}
        elif aesthetic in ("alpha", "size"):
            warn_discrete(aesthetic)
    return scales


# ============================================================================
# 4. layout
# ============================================================================

def _wrap_dims(n: int, nrow: Optional[int], ncol: Optional[int]) -> Tuple[int, int]:
    if nrow is None and ncol is None:
        if n <= 3:
            return 1, max(n, 1)
        if n <= 6:
            return 2, (n + 1) // 2
        if n <= 12:
            return 3, (n + 2) // 3
        ncol = math.ceil(math.sqrt(n))
        return math.ceil(n / ncol), ncol
    if ncol is None:
        return nrow, math.ceil(n / nrow)
    if nrow is None:
        return math.ceil(n / ncol), ncol
    if nrow * ncol < n:
        raise PlotSpecError(f"nrow * ncol ({nrow} * {ncol}) is smaller than the number of panels ({n})")
    return nrow, ncol


def _observed_levels(variable: str, built: Sequence[_Built]) -> List[Any]:
    levels: List[Any] = []
    for b in built:
        column = f"facet:{variable}"
        if column not in b.frame.columns:
            continue
        seen = set(b.frame[column].dropna().unique().tolist())
        levels.extend(v for v in levels_of(b.frame[column]) if v in seen and v not in levels)
    if not levels and not any(f"facet:{variable}" in b.frame.columns for b in built):
        raise PlotSpecError(f"Faceting variable not found in the data: {variable}")
    return levels


def _layout(spec: PlotSpec, built: List[_Built]) -> _Layout:
    facet = spec.facet
    if facet is None or not facet.variables():
        return _Layout()
    if facet.kind == "grid":
        if len(facet.rows) > 1 or len(facet.cols) > 1:
            raise PlotSpecError("facet_grid() takes one variable per side")
        rows = [(v,) for v in _observed_levels(facet.rows[0], built)] if facet.rows else [()]
        cols = [(v,) for v in _observed_levels(facet.cols[0], built)] if facet.cols else [()]
        return _Layout(
            nrow=len(rows), ncol=len(cols), variables=list(facet.rows) + list(facet.cols),
            keys=[r + c for r in rows for c in cols],
            cells=[(i, j) for i in range(len(rows)) for j in range(len(cols))], kind="grid",
        )
    variables = list(facet.cols)
    levels = [_observed_levels(v, built) for v in variables]
    seen = set()
    for b in built:
        columns = [f"facet:{v}" for v in variables]
        if all(c in b.frame.columns for c in columns):
            seen.update(zip(*[b.frame[c] for c in columns]))
    keys = sorted(
        (k for k in seen if all(x in lv for x, lv in zip(k, levels))),
        key=lambda k: tuple(lv.index(x) for x, lv in zip(k, levels)),
    )
    nrow, ncol = _wrap_dims(len(keys), facet.nrow, facet.ncol)
    return _Layout(nrow=nrow, ncol=ncol, variables=variables, keys=keys,
                   cells=[divmod(i, ncol) for i in range(len(keys))], kind="wrap")


def _panel_frame(b: _Built, layout: _Layout, p: int) -> pd.DataFrame:
    columns = [f"facet:{v}" for v in layout.variables]
    if not columns or not all(c in b.frame.columns for c in columns):
        # layers without the facet variables appear in every panel
        return b.frame
    mask = np.ones(len(b.frame), dtype=bool)
    for c, value in zip(columns, layout.keys[p]):
        mask &= (b.frame[c] == value).to_numpy(dtype=bool, na_value=False)
    return b.frame[mask]


# ============================================================================
# 5. layers
# ============================================================================

def _resolution(values: pd.Series) -> float:
    unique = np.unique(values.dropna().to_numpy(dtype=float))
    if len(unique) < 2:
        return 1.0
    return float(np.diff(unique).min())


def _jitter(df: pd.DataFrame, layer: Layer) -> pd.DataFrame:
    df = df.copy()
    rng = np.random.default_rng(layer.seed)
    for axis, amount in (("x", layer.width), ("y", layer.height)):
        values = df[axis]
        if is_discrete(values):
            continue
        amount = 0.4 * _resolution(values) if amount is None else amount
        df[axis] = values.astype(float) + rng.uniform(-amount, amount, len(df))
    return df


def _hue(df: pd.DataFrame, sc: _Scales, *aesthetics: str) -> Dict[str, Any]:
    for aesthetic in aesthetics:
        if aesthetic in df.columns:
            return {"hue": aesthetic, "palette": sc.palette(aesthetic)}
    return {}


def _alpha_values(values: pd.Series) -> np.ndarray:
    if is_discrete(values):
        codes = values.cat.codes.to_numpy(dtype=float)
        top = max(len(values.cat.categories) - 1, 1)
        return 0.1 + 0.9 * codes / top
    v = values.to_numpy(dtype=float)
    span = np.nanmax(v) - np.nanmin(v)
    return 0.1 + 0.9 * ((v - np.nanmin(v)) / span if span else np.ones_like(v))


def _point_style(layer: Layer, kws: Dict[str, Any]) -> None:
    color = color_value(layer.color) or "black"
    marker, mode = shape_marker(layer.shape) if layer.shape is not None else ("o", "solid")
    stroke = (layer.stroke if layer.stroke is not None else 0.5) * STROKE
    if "style" not in kws:
        kws["marker"] = marker
    if mode == "open":
        kws.update(facecolor="none", edgecolor=color, linewidth=stroke)
    elif mode == "fill":
        kws.update(facecolor=color_value(layer.fill) or "none", edgecolor=color, linewidth=stroke)
    elif mode == "line":
        kws.update(linewidth=stroke)
    else:
        kws.update(edgecolor="face" if layer.stroke is None else color, linewidth=0 if layer.stroke is None else stroke)
    if "hue" not in kws:
        kws["color"] = color


def _draw_point(ax, df: pd.DataFrame, b: _Built, sc: _Scales, legend: bool) -> None:
    layer = b.layer
    if layer.position == "jitter":
        df = _jitter(df, layer)
    elif layer.position != "identity":
        raise PlotSpecError(f"position = '{layer.position}' is not supported for {layer.label}()")
    kws: Dict[str, Any] = dict(data=df, x="x", y="y", ax=ax, legend="auto" if legend else False)
    kws.update(_hue(df, sc, "color"))
    if "shape" in df.columns:
        kws.update(style="shape", markers=sc.markers)
    if "size" in df.columns:
        kws.update(size="size", sizes=((1.0 * PT) ** 2, (6.0 * PT) ** 2))
    else:
        kws["s"] = ((layer.size if layer.size is not None else 1.5) * PT) ** 2
    if "alpha" in df.columns:
        kws["alpha"] = _alpha_values(df["alpha"])
    elif layer.alpha is not None:
        kws["alpha"] = layer.alpha
    _point_style(layer, kws)
    sns.scatterplot(**kws)


def _draw_count(ax, df: pd.DataFrame, b: _Built, sc: _Scales, legend: bool) -> None:
    keys = [c for c in ("x", "y", "color", "shape") if c in df.columns]
    counts = df.groupby(keys, observed=True).size().reset_index(name="n")
    kws: Dict[str, Any] = dict(data=counts, x="x", y="y", size="n", sizes=((1.0 * PT) ** 2, (6.0 * PT) ** 2),
                               ax=ax, legend="auto" if legend else False)
    kws.update(_hue(counts, sc, "color"))
    if "shape" in counts.columns:
        kws.update(style="shape", markers=sc.markers)
    if b.layer.alpha is not None:
        kws["alpha"] = b.layer.alpha
    _point_style(b.layer, kws)
    sns.scatterplot(**kws)


def _groups(df: pd.DataFrame, aesthetics: Sequence[str]) -> List[Tuple[Dict[str, Any], pd.DataFrame]]:
    keys = [a for a in aesthetics if a in df.columns and is_discrete(df[a])]
    if not keys:
        return [({}, df)]
    out = []
    for values, part in df.groupby(keys, observed=True, sort=True):
        values = values if isinstance(values, tuple) else (values,)
        out.append((dict(zip(keys, values)), part))
    return out


def _draw_smooth(ax, df: pd.DataFrame, b: _Built, sc: _Scales, legend: bool) -> None:
    layer = b.layer
    method = layer.method or ("loess" if len(df) < 1000 else "gam")
    if layer.method is None:
        logger.info("`geom_smooth()` using method = '%s' and formula = 'y ~ x'", method)
    if method not in ("lm", "loess", "gam", "lowess"):
        raise PlotSpecError(f"Unknown smoothing method: {method}")
    linewidth = (layer.linewidth if layer.linewidth is not None else 1.0) * LWD
    for keys, part in _groups(df, ("color", "linetype", "group")):
        if part["x"].nunique() < 2:
            continue
        if "color" in keys:
            color = sc.palettes["color"][keys["color"]]
        else:
            color = color_value(layer.color) or _SMOOTH_COLOR
        linestyle = sc.dashes.get(keys["linetype"], "-") if "linetype" in keys else linetype_style(layer.linetype)
        # statsmodels lowess has no standard error, so only lm draws a band
        sns.regplot(
            data=part, x="x", y="y", ax=ax, scatter=False, truncate=True, color=color,
            lowess=method != "lm", ci=layer.level * 100 if layer.se and method == "lm" else None,
            line_kws={"linewidth": linewidth, "linestyle": linestyle},
        )


def _draw_line(ax, df: pd.DataFrame, b: _Built, sc: _Scales, legend: bool) -> None:
    layer = b.layer
    kws: Dict[str, Any] = dict(data=df, x="x", y="y", ax=ax, estimator=None, sort=True,
                               legend="auto" if legend else False,
                               linewidth=(layer.linewidth if layer.linewidth is not None else 0.5) * LWD)
    kws.update(_hue(df, sc, "color"))
    if "linetype" in df.columns:
        kws["style"] = "linetype"
    if "group" in df.columns:
        kws["units"] = "group"
    if "hue" not in kws:
        kws["color"] = color_value(layer.color) or "black"
    if layer.alpha is not None:
        kws["alpha"] = layer.alpha
    sns.lineplot(**kws)


def _position_axis(df: pd.DataFrame) -> str:
    return "x" if "x" in df.columns else "y"


def _bar_fill(layer: Layer, kws: Dict[str, Any]) -> None:
    fill = color_value(layer.fill)
    if fill == "none":
        kws["fill"] = False
        kws["color"] = color_value(layer.color) or "black"
    elif "hue" not in kws:
        kws["color"] = fill or _BAR_FILL
    if layer.color is not None and fill != "none":
        kws["edgecolor"] = color_value(layer.color)
    if layer.alpha is not None:
        kws["alpha"] = layer.alpha


def _draw_bars(ax, df: pd.DataFrame, b: _Built, sc: _Scales, legend: bool) -> None:
    """geom_bar() counts rows per level; geom_col() stacks y as given."""
    layer = b.layer
    if layer.position == "jitter":
        raise PlotSpecError(f"position = 'jitter' is not supported for {layer.label}()")
    if layer.stat == "identity":
        pos, value = ("y", "x") if sc.flip else ("x", "y")
    else:
        pos, value = _position_axis(df), None
    prop = b.after.get("y", b.after.get("x")) == "prop"
    kws: Dict[str, Any] = {pos: pos, "data": df, "ax": ax, "discrete": True,
                           "shrink": layer.width if layer.width is not None else 0.9,
                           "stat": "proportion" if prop else "count",
                           "legend": legend}
    if value is not None:
        kws["weights"] = value
    kws.update(_hue(df, sc, "fill", "color"))
    if "hue" in kws:
        kws["multiple"] = _MULTIPLE[layer.position]
        # group = 1 turns proportions into shares of the whole panel
        kws["common_norm"] = "group" in df.columns
        if kws["hue"] == "color":
            kws["fill"] = False
    _bar_fill(layer, kws)
    sns.histplot(**kws)


def _binrange(values: pd.Series, binwidth: float, boundary: Optional[float], center: Optional[float]) -> Tuple[float, float]:
    """Align bins like stat_bin(): centred on multiples of binwidth unless told otherwise."""
    if binwidth <= 0:
        raise PlotSpecError("`binwidth` must be positive")
    if boundary is None:
        boundary = binwidth / 2 if center is None else center - binwidth / 2
    lo, hi = float(values.min()), float(values.max())
    start = boundary + math.floor((lo - boundary) / binwidth) * binwidth
    return start, max(hi, start + binwidth)


def _bin_kws(df: pd.DataFrame, b: _Built) -> Dict[str, Any]:
    layer = b.layer
    pos = _position_axis(df)
    stat = "density" if b.after.get("y", b.after.get("x")) == "density" else "count"
    kws: Dict[str, Any] = {pos: pos, "data": df, "stat": stat, "common_norm": False}
    if layer.binwidth is not None:
        kws["binwidth"] = layer.binwidth
        kws["binrange"] = _binrange(df[pos].astype(float), layer.binwidth, layer.boundary, layer.center)
    else:
        if layer.bins is None:
            logger.info("`stat_bin()` using `bins = 30`. Pick better value with `binwidth`.")
        kws["bins"] = layer.bins or 30
    return kws


def _draw_histogram(ax, df: pd.DataFrame, b: _Built, sc: _Scales, legend: bool) -> None:
    layer = b.layer
    kws = _bin_kws(df, b)
    kws.update(ax=ax, legend=legend)
    kws.update(_hue(df, sc, "fill", "color"))
    if "hue" in kws:
        kws["multiple"] = _MULTIPLE.get(layer.position, "stack")
    _bar_fill(layer, kws)
    sns.histplot(**kws)


def _draw_freqpoly(ax, df: pd.DataFrame, b: _Built, sc: _Scales, legend: bool) -> None:
    layer = b.layer
    kws = _bin_kws(df, b)
    kws.update(ax=ax, legend=legend, element="poly", fill=False,
               linewidth=(layer.linewidth if layer.linewidth is not None else 0.5) * LWD)
    kws.update(_hue(df, sc, "color"))
    if "hue" not in kws:
        kws["color"] = color_value(layer.color) or "black"
    sns.histplot(**kws)


def _draw_density(ax, df: pd.DataFrame, b: _Built, sc: _Scales, legend: bool) -> None:
    layer = b.layer
    pos = _position_axis(df)
    if df[pos].nunique() < 2:
        return
    kws: Dict[str, Any] = {pos: pos, "data": df, "ax": ax, "legend": legend, "common_norm": False,
                           "linewidth": (layer.linewidth if layer.linewidth is not None else 0.5) * LWD}
    kws.update(_hue(df, sc, "fill", "color"))
    fill = color_value(layer.fill)
    kws["fill"] = kws.get("hue") == "fill" or fill not in (None, "none")
    if "hue" not in kws:
        kws["color"] = fill if kws["fill"] else color_value(layer.color) or "black"
    if layer.alpha is not None:
        kws["alpha"] = layer.alpha
    sns.kdeplot(**kws)


def _draw_boxplot(ax, df: pd.DataFrame, b: _Built, sc: _Scales, legend: bool) -> None:
    layer = b.layer
    kws: Dict[str, Any] = {"ax": ax, "fill": color_value(layer.fill) != "none"}
    if layer.alpha is not None:
        kws["boxprops"] = {"alpha": layer.alpha}
    if layer.color is not None:
        kws["linecolor"] = color_value(layer.color)

    numeric_x = "x" in df.columns and not is_discrete(df["x"])
    if "group" in df.columns and numeric_x:
        # cut_width() style groups sit at the middle of their x range
        centers = df.groupby("group", observed=True)["x"].agg(lambda v: (v.min() + v.max()) / 2)
        df = df.assign(x=df["group"].map(centers).astype(float))
        kws["native_scale"] = True
        kws["color"] = color_value(layer.fill) or "white"
        spacing = _resolution(df["x"])
        parts = list(df.groupby("x", sort=True))
        biggest = max(len(part) for _, part in parts)
        for _, part in parts:
            share = math.sqrt(len(part) / biggest) if layer.varwidth else 1.0
            # a single box is drawn with a width in data units
            sns.boxplot(data=part, x="x", y="y", orient="x", width=0.9 * share * (spacing if len(parts) > 1 else 1.0), **kws)
        return

    present = [a for a in ("x", "y") if a in df.columns]
    kws.update({a: a for a in present})
    kws.update(_hue(df, sc, "fill", "color"))
    if "hue" in kws:
        kws["legend"] = "auto" if legend else False
    else:
        kws["color"] = color_value(layer.fill) or "white"
    if not layer.varwidth or len(present) < 2:
        sns.boxplot(data=df, width=layer.width if layer.width is not None else 0.75, **kws)
        return
    pos = "y" if is_discrete(df["y"]) and not is_discrete(df["x"]) else "x"
    counts = df.groupby(pos, observed=True).size()
    for level, part in df.groupby(pos, observed=True):
        share = math.sqrt(counts[level] / counts.max())
        sns.boxplot(data=part, order=list(df[pos].cat.categories), width=0.75 * share, **kws)


def _draw_tile(ax, df: pd.DataFrame, b: _Built, sc: _Scales, legend: bool) -> None:
    values = df["fill"] if "fill" in df.columns else pd.Series(1.0, index=df.index)
    if is_discrete(values):
        raise PlotSpecError(f"{b.layer.label}() needs a continuous fill")
    table = df.assign(value=values).pivot_table(index="y", columns="x", values="value", aggfunc="first",
                                                observed=False, dropna=False)
    sns.heatmap(table, ax=ax, cmap=GRADIENT, cbar=legend, cbar_kws={"label": sc.titles.get("fill", "")})
    # rows grow upwards as on any other y axis
    ax.invert_yaxis()


def _draw_bin2d(ax, df: pd.DataFrame, b: _Built, sc: _Scales, legend: bool) -> None:
    layer = b.layer
    kws: Dict[str, Any] = dict(data=df, x="x", y="y", ax=ax, cmap=GRADIENT, cbar=legend,
                               cbar_kws={"label": "count"})
    if layer.binwidth is not None:
        kws["binwidth"] = layer.binwidth
    else:
        kws["bins"] = layer.bins or 30
    sns.histplot(**kws)


def _draw_hex(ax, df: pd.DataFrame, b: _Built, sc: _Scales, legend: bool) -> None:
    layer = b.layer
    hexes = ax.hexbin(df["x"].astype(float), df["y"].astype(float), gridsize=layer.bins or 30, mincnt=1,
                      cmap=GRADIENT, alpha=layer.alpha, linewidths=0)
    if legend:
        ax.figure.colorbar(hexes, ax=ax, label="count", shrink=0.8)


def _draw_ridges(ax, df: pd.DataFrame, b: _Built, sc: _Scales, legend: bool) -> None:
    """One half violin per level of y, filled like a ridgeline."""
    layer = b.layer
    if not is_discrete(df["y"]):
        raise PlotSpecError(f"{layer.label}() needs a discrete y")
    order = list(df["y"].cat.categories)
    fills = sc.palettes.get("fill")
    for level, part in df.groupby("y", observed=True):
        if part["x"].nunique() < 2:
            continue
        if fills is not None and "fill" in part.columns:
            color = fills[part["fill"].iloc[0]]
        else:
            color = color_value(layer.fill) or "grey"
        sns.violinplot(
            data=part, x="x", y="y", order=order, orient="h", split=True, inner=None, cut=0,
            width=0.9 * layer.scale, density_norm="width", color=color, ax=ax,
            alpha=layer.alpha if layer.alpha is not None else 1.0,
        )


def _summary(fun: Any) -> Callable[[pd.Series], float]:
    return lambda values: pd.Series(values).agg(fun)


def _mean_se_range(values) -> Tuple[float, float]:
    out = DescriptiveStats.mean_se(np.asarray(values, dtype=float))
    return out["ymin"], out["ymax"]


def _draw_summary(ax, df: pd.DataFrame, b: _Built, sc: _Scales, legend: bool) -> None:
    """stat_summary(): a point at fun(y) with a range from fun_min to fun_max."""
    layer = b.layer
    if layer.fun_min is not None or layer.fun_max is not None:
        low = _summary(layer.fun_min or "min")
        high = _summary(layer.fun_max or "max")
        errorbar: Any = lambda values: (low(values), high(values))
    elif layer.fun is None:
        logger.info("No summary function supplied, defaulting to `mean_se()`")
        errorbar = _mean_se_range
    else:
        errorbar = None
    sns.pointplot(
        data=df, x="x", y="y", ax=ax, estimator=layer.fun or "mean", errorbar=errorbar,
        linestyle="none", marker="o", color=color_value(layer.color) or "black",
    )


def _draw_polar_bars(ax, df: pd.DataFrame, b: _Built, sc: _Scales, legend: bool) -> None:
    """Stacked bars on polar axes: each level of x gets an equal wedge."""
    layer = b.layer
    if not is_discrete(df["x"]):
        raise PlotSpecError("coord_polar() needs a discrete x")
    levels = list(df["x"].cat.categories)
    weights = df["y"] if layer.stat == "identity" else pd.Series(1.0, index=df.index)
    if "fill" in df.columns:
        table = pd.crosstab(df["x"], df["fill"], values=weights, aggfunc="sum", dropna=False).fillna(0.0)
    else:
        table = weights.groupby(df["x"], observed=False).sum().to_frame("count")
    table = table.reindex(levels, fill_value=0.0)
    step = 2 * np.pi / max(len(levels), 1)
    theta = np.arange(len(levels)) * step
    width = step * (layer.width if layer.width is not None else 0.9)
    bottom = np.zeros(len(levels))
    for level in table.columns:
        color = sc.palettes["fill"][level] if "fill" in df.columns else color_value(layer.fill) or _BAR_FILL
        heights = table[level].to_numpy(dtype=float)
        ax.bar(theta, heights, width=width, bottom=bottom, color=color, alpha=layer.alpha,
               label=str(level), align="center")
        bottom = bottom + heights
    ax.set_xticks(theta, [str(v) for v in levels])
    ax.set_theta_zero_location("N")
    ax.set_theta_direction(-1)
    if legend and "fill" in df.columns:
        ax.legend(title=sc.titles.get("fill", "fill"))


def _drawer(layer: Layer, polar: bool) -> Callable[..., None]:
    if polar:
        if layer.geom == "bar" and layer.stat in ("count", "identity"):
            return _draw_polar_bars
        raise PlotSpecError(f"coord_polar() supports bar layers only, not {layer.label}()")
    geom, stat = layer.geom, layer.stat
    if geom == "point":
        return _draw_count if stat == "sum" else _draw_point
    if geom == "bar":
        return _draw_histogram if stat == "bin" else _draw_bars
    if geom == "line":
        return _draw_freqpoly if stat == "bin" else _draw_line
    return {
        "smooth": _draw_smooth,
        "density": _draw_density,
        "boxplot": _draw_boxplot,
        "tile": _draw_tile,
        "bin2d": _draw_bin2d,
        "hex": _draw_hex,
        "density_ridges": _draw_ridges,
        "pointrange": _draw_summary,
    }[geom]


# ============================================================================
# 6. labels and legends
# ============================================================================

def _titles(spec: PlotSpec, built: List[_Built]) -> Dict[str, str]:
    titles: Dict[str, str] = {}
    if not built and spec.data is not None:
        titles.update(_resolve(spec.mapping.mapped(), spec.data)[1])
    for b in built:
        for aesthetic, title in b.titles.items():
            titles.setdefault(aesthetic, title)
    stats = [b.layer.stat for b in built]
    if "y" not in titles and stats and stats[0] in _STAT_Y_TITLE:
        titles["y"] = _STAT_Y_TITLE[stats[0]]
    titles.update(spec.labs.model_dump(exclude_none=True, include=set(("x", "y") + NON_POSITION)))
    return titles


def _fix_legend(ax, titles: Dict[str, str], outside: bool) -> None:
    legend = ax.get_legend()
    if legend is None:
        return
    title = legend.get_title().get_text()
    legend.set_title(titles.get(title, title))
    for text in legend.get_texts():
        if text.get_text() in titles and text.get_text() in NON_POSITION + ("n",):
            text.set_text(titles[text.get_text()])
    if outside:
        sns.move_legend(ax, "center left", bbox_to_anchor=(1.02, 0.5), frameon=False)


def _set_labels(fig: Figure, axes: List[Any], spec: PlotSpec, titles: Dict[str, str], faceted: bool) -> None:
    xlabel, ylabel = titles.get("x", ""), titles.get("y", "")
    for ax in axes:
        ax.set_xlabel("")
        ax.set_ylabel("")
    if faceted:
        fig.supxlabel(xlabel)
        fig.supylabel(ylabel)
    else:
        axes[0].set_xlabel(xlabel)
        axes[0].set_ylabel(ylabel)

    labs = spec.labs
    if labs.title and labs.subtitle and not faceted:
        fig.suptitle(labs.title, x=0.02, ha="left", fontsize=13)
        axes[0].set_title(labs.subtitle, loc="left", fontsize=10)
    elif labs.title or labs.subtitle:
        text = "\n".join(t for t in (labs.title, labs.subtitle) if t)
        fig.suptitle(text, x=0.02, ha="left", fontsize=13)
    if labs.caption:
        axes[-1].annotate(labs.caption, xy=(1, 0), xycoords="axes fraction", xytext=(0, -32),
                          textcoords="offset points", ha="right", va="top", fontsize=8)


# ============================================================================
# entry points
# ============================================================================

def draw(plot: Any, width: Optional[float] = None, height: Optional[float] = None, dpi: Optional[int] = None) -> Figure:
    """Build a matplotlib Figure for a plot (Plot or PlotSpec)."""
    spec = _as_spec(plot)
    coord = spec.coord
    polar = coord.kind == "polar"
    flip = coord.kind == "flip"
    if polar and coord.theta != "x":
        raise PlotSpecError("coord_polar(theta = 'y') is not supported")
    drawers = [_drawer(layer, polar) for layer in spec.layers]

    built = _build_layers(spec)
    titles = _titles(spec, built)
    for b in built:
        _drop_missing(b)
        if flip:
            _flip(b)
    if flip:
        titles["x"], titles["y"] = titles.get("y", ""), titles.get("x", "")
    scales = _train(built, flip)
    scales.titles = titles
    layout = _layout(spec, built)

    width = width or settings.figure_width
    height = height or settings.figure_height
    dpi = dpi or settings.figure_dpi
    style = spec.theme.style or settings.plot_style
    show_legend = spec.theme.legend_position != "none"
    with sns.axes_style(style):
        fig = Figure(figsize=(width, height), dpi=dpi, layout="constrained")
        if polar:
            # polar axes cannot share limits
            grid = fig.subplots(layout.nrow, layout.ncol, squeeze=False, subplot_kw={"projection": "polar"})
        else:
            grid = fig.subplots(layout.nrow, layout.ncol, sharex=True, sharey=True, squeeze=False)
        axes = [grid[r][c] for r, c in layout.cells]
        used = set(layout.cells)
        for r in range(layout.nrow):
            for c in range(layout.ncol):
                if (r, c) not in used:
                    grid[r][c].set_visible(False)

        for p, ax in enumerate(axes):
            last = p == len(axes) - 1
            if not built and spec.data is not None and {"x", "y"} <= set(spec.mapping.mapped()):
                # axes from the global mapping, nothing drawn
                frame = _resolve(spec.mapping.mapped(), spec.data.reset_index(drop=True))[0]
                sns.scatterplot(data=frame, x="x", y="y", ax=ax, alpha=0, legend=False)
            for b, drawer in zip(built, drawers):
                df = _panel_frame(b, layout, p)
                if df.empty:
                    continue
                drawer(ax, df, b, scales, last and show_legend and b.layer.show_legend is not False)
            if not polar:
                xlim, ylim = (coord.ylim, coord.xlim) if flip else (coord.xlim, coord.ylim)
                if xlim is not None:
                    ax.set_xlim(*xlim)
                if ylim is not None:
                    ax.set_ylim(*ylim)
            if spec.theme.aspect_ratio is not None:
                ax.set_box_aspect(spec.theme.aspect_ratio)
            if layout.kind == "wrap":
                ax.set_title(", ".join(str(v) for v in layout.keys[p]), fontsize=9)
            elif layout.kind == "grid":
                r, c = layout.cells[p]
                key = layout.keys[p]
                if r == 0 and spec.facet.cols:
                    ax.set_title(str(key[-1]), fontsize=9)
                if c == layout.ncol - 1 and spec.facet.rows:
                    ax.annotate(str(key[0]), xy=(1.02, 0.5), xycoords="axes fraction",
                                rotation=-90, va="center", ha="left", fontsize=9)
            _fix_legend(ax, titles, outside=not polar)

        _set_labels(fig, axes, spec, titles, layout.kind != "none")
    return fig


def save(plot: Any, path: Union[str, Path], width: Optional[float] = None, height: Optional[float] = None,
         dpi: Optional[int] = None) -> Path:
    """Write a plot to disk; the format follows the file extension."""
    path = Path(path)
    width = width or settings.figure_width
    height = height or settings.figure_height
    logger.info("Saving %.3g x %.3g in image: %s", width, height, path)
    fig = draw(plot, width=width, height=height, dpi=dpi)
    path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(path)
    return path


def render_png(plot: Any, width: Optional[float] = None, height: Optional[float] = None,
               dpi: Optional[int] = None) -> bytes:
    fig = draw(plot, width=width, height=height, dpi=dpi)
    buf = BytesIO()
    fig.savefig(buf, format="png")
    return buf.getvalue()
