"""
Layered grammar of graphics.

    ggplot(penguins, aes(x="flipper_length_mm", y="body_mass_g"))
        + geom_point(aes(color="species", shape="species"))
        + geom_smooth(method="lm")
        + labs(title="Body mass and flipper length")

Every `+` returns a new Plot; nothing is drawn until draw() / save().
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Iterable, List, Optional, Tuple, Union

import pandas as pd

from edalab.plots.specs import Aes, Coord, Facet, Labs, Layer, PlotSpec, Theme, parse_facets


class Plot:
    def __init__(self, spec: PlotSpec):
        self.spec = spec

    def __add__(self, other: Any) -> "Plot":
        spec = self.spec.model_copy(deep=False)
        spec.layers = list(spec.layers)
        for part in _flatten(other):
            if isinstance(part, Layer):
                spec.layers.append(part)
            elif isinstance(part, Facet):
                spec.facet = part
            elif isinstance(part, Coord):
                spec.coord = part
            elif isinstance(part, Labs):
                spec.labs = spec.labs.updated(part)
            elif isinstance(part, Theme):
                spec.theme = spec.theme.updated(part)
            else:
                raise TypeError(f"Cannot add {type(part).__name__} to a plot")
        return Plot(spec)

    def draw(self):
        from edalab.plots.render import draw

        return draw(self.spec)

    def save(self, path: Union[str, Path], width: Optional[float] = None, height: Optional[float] = None,
             dpi: Optional[int] = None) -> Path:
        from edalab.plots.render import save

        return save(self.spec, path, width=width, height=height, dpi=dpi)

    def __repr__(self) -> str:
        names = ", ".join(layer.label for layer in self.spec.layers) or "no layers"
        return f"<Plot: {names}>"


def _flatten(part: Any) -> Iterable[Any]:
    if isinstance(part, (list, tuple)):
        for p in part:
            yield from _flatten(p)
    else:
        yield part


def aes(x: Any = None, y: Any = None, **kwargs: Any) -> Aes:
    return Aes(x=x, y=y, **kwargs)


def after_stat(name: str) -> str:
    return f"after_stat({name})"


def ggplot(data: Optional[pd.DataFrame] = None, mapping: Optional[Aes] = None) -> Plot:
    return Plot(PlotSpec(data=data, mapping=mapping or Aes()))


# ============================================================================
# Layers
# ============================================================================

def _layer(name: str, geom: str, stat: str, mapping: Optional[Aes], data: Optional[pd.DataFrame],
           position: str, params: dict) -> Layer:
    return Layer(name=name, geom=geom, stat=stat, position=position,
                 mapping=mapping or Aes(), data=data, **params)


def geom_point(mapping: Optional[Aes] = None, data: Optional[pd.DataFrame] = None,
               position: str = "identity", **params: Any) -> Layer:
    return _layer("geom_point", "point", "identity", mapping, data, position, params)


def geom_jitter(mapping: Optional[Aes] = None, data: Optional[pd.DataFrame] = None, **params: Any) -> Layer:
    return _layer("geom_jitter", "point", "identity", mapping, data, "jitter", params)


def geom_count(mapping: Optional[Aes] = None, data: Optional[pd.DataFrame] = None, **params: Any) -> Layer:
    mapping = Aes(size="after_stat(n)").merged(mapping or Aes())
    return _layer("geom_count", "point", "sum", mapping, data, "identity", params)


def geom_smooth(mapping: Optional[Aes] = None, data: Optional[pd.DataFrame] = None,
                method: Optional[str] = None, se: bool = True, **params: Any) -> Layer:
    return _layer("geom_smooth", "smooth", "smooth", mapping, data, "identity",
                  dict(params, method=method, se=se))


def geom_bar(mapping: Optional[Aes] = None, data: Optional[pd.DataFrame] = None,
             stat: str = "count", position: str = "stack", **params: Any) -> Layer:
    return _layer("geom_bar", "bar", stat, mapping, data, position, params)


def geom_col(mapping: Optional[Aes] = None, data: Optional[pd.DataFrame] = None,
             position: str = "stack", **params: Any) -> Layer:
    return _layer("geom_col", "bar", "identity", mapping, data, position, params)


def geom_histogram(mapping: Optional[Aes] = None, data: Optional[pd.DataFrame] = None,
                   position: str = "stack", **params: Any) -> Layer:
    return _layer("geom_histogram", "bar", "bin", mapping, data, position, params)


def geom_freqpoly(mapping: Optional[Aes] = None, data: Optional[pd.DataFrame] = None, **params: Any) -> Layer:
    return _layer("geom_freqpoly", "line", "bin", mapping, data, "identity", params)


def geom_line(mapping: Optional[Aes] = None, data: Optional[pd.DataFrame] = None, **params: Any) -> Layer:
    return _layer("geom_line", "line", "identity", mapping, data, "identity", params)


def geom_density(mapping: Optional[Aes] = None, data: Optional[pd.DataFrame] = None, **params: Any) -> Layer:
    return _layer("geom_density", "density", "density", mapping, data, "identity", params)


def geom_boxplot(mapping: Optional[Aes] = None, data: Optional[pd.DataFrame] = None, **params: Any) -> Layer:
    return _layer("geom_boxplot", "boxplot", "boxplot", mapping, data, "identity", params)


def geom_tile(mapping: Optional[Aes] = None, data: Optional[pd.DataFrame] = None, **params: Any) -> Layer:
    return _layer("geom_tile", "tile", "identity", mapping, data, "identity", params)


def geom_bin2d(mapping: Optional[Aes] = None, data: Optional[pd.DataFrame] = None, **params: Any) -> Layer:
    mapping = Aes(fill="after_stat(count)").merged(mapping or Aes())
    return _layer("geom_bin2d", "bin2d", "bin2d", mapping, data, "identity", params)


def geom_hex(mapping: Optional[Aes] = None, data: Optional[pd.DataFrame] = None, **params: Any) -> Layer:
    return _layer("geom_hex", "hex", "binhex", mapping, data, "identity", params)


def geom_density_ridges(mapping: Optional[Aes] = None, data: Optional[pd.DataFrame] = None,
                        **params: Any) -> Layer:
    return _layer("geom_density_ridges", "density_ridges", "density_ridges", mapping, data, "identity", params)


def stat_summary(mapping: Optional[Aes] = None, data: Optional[pd.DataFrame] = None, fun: Any = None,
                 fun_min: Any = None, fun_max: Any = None, **params: Any) -> Layer:
    return _layer("stat_summary", "pointrange", "summary", mapping, data, "identity",
                  dict(params, fun=fun, fun_min=fun_min, fun_max=fun_max))


# ============================================================================
# Facets, coordinates, labels, theme
# ============================================================================

def facet_wrap(facets: Union[str, List[str]], ncol: Optional[int] = None, nrow: Optional[int] = None) -> Facet:
    rows, cols = parse_facets(facets)
    return Facet(kind="wrap", cols=rows + cols, ncol=ncol, nrow=nrow)


def facet_grid(rows: Optional[str] = None, cols: Optional[Union[str, List[str]]] = None) -> Facet:
    """facet_grid("drv ~ cyl"), facet_grid("drv ~ ."), or facet_grid(rows="drv", cols="cyl")."""
    if rows is not None and "~" in rows:
        r, c = parse_facets(rows)
    else:
        r = parse_facets(rows)[1] if rows else []
        c = parse_facets(cols)[1] if cols else []
    return Facet(kind="grid", rows=r, cols=c)


def coord_cartesian(xlim: Optional[Tuple[float, float]] = None, ylim: Optional[Tuple[float, float]] = None) -> Coord:
    return Coord(kind="cartesian", xlim=xlim, ylim=ylim)


def coord_flip(xlim: Optional[Tuple[float, float]] = None, ylim: Optional[Tuple[float, float]] = None) -> Coord:
    return Coord(kind="flip", xlim=xlim, ylim=ylim)


def coord_polar(theta: str = "x") -> Coord:
    return Coord(kind="polar", theta=theta)


def labs(**kwargs: Optional[str]) -> Labs:
    return Labs(**kwargs)


def theme(**kwargs: Any) -> Theme:
    return Theme(**kwargs)


def ggsave(path: Union[str, Path], plot: Plot, width: Optional[float] = None, height: Optional[float] = None,
           dpi: Optional[int] = None) -> Path:
    return plot.save(path, width=width, height=height, dpi=dpi)


# layer constructors by short name, for plots described as JSON
LAYER_FUNCTIONS = {
    "point": geom_point,
    "jitter": geom_jitter,
    "count": geom_count,
    "smooth": geom_smooth,
    "bar": geom_bar,
    "col": geom_col,
    "histogram": geom_histogram,
    "freqpoly": geom_freqpoly,
    "line": geom_line,
    "density": geom_density,
    "boxplot": geom_boxplot,
    "tile": geom_tile,
    "bin2d": geom_bin2d,
    "hex": geom_hex,
    "density_ridges": geom_density_ridges,
    "summary": stat_summary,
}
