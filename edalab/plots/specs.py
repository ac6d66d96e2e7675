"""
Plot specification models.

A plot is data + a default aesthetic mapping + layers, with optional facet,
coordinate system, labels and theme. The models only describe the plot;
edalab.plots.render turns one into a matplotlib Figure.
"""

from __future__ import annotations

import re
from typing import Any, Dict, List, Literal, Optional, Tuple, Union

import pandas as pd
from pydantic import BaseModel, ConfigDict, Field, field_validator


class PlotSpecError(ValueError):
    """A plot that cannot be drawn as specified."""


class PlotWarning(UserWarning):
    pass


class MissingValuesWarning(PlotWarning):
    """Rows dropped from a layer because a required aesthetic was missing."""


AESTHETICS = ("x", "y", "color", "fill", "shape", "size", "alpha", "linetype", "group")

GEOMS = (
    "point", "bar", "line", "density", "smooth", "boxplot", "tile",
    "bin2d", "hex", "density_ridges", "pointrange",
)
STATS = (
    "identity", "count", "bin", "density", "smooth", "boxplot", "sum",
    "bin2d", "binhex", "density_ridges", "summary",
)
POSITIONS = ("identity", "stack", "fill", "dodge", "jitter")

_AFTER_STAT = re.compile(r"^\s*(?:after_stat\(\s*(\w+)\s*\)|\.\.(\w+)\.\.)\s*$")


def stat_variable(value: Any) -> Optional[str]:
    """'after_stat(prop)' -> 'prop'; None for anything else."""
    if not isinstance(value, str):
        return None
    m = _AFTER_STAT.match(value)
    if not m:
        return None
    return m.group(1) or m.group(2)


class Aes(BaseModel):
    """Aesthetic mapping.

    Values are column names, computed vectors (a pandas Series the length of
    the data), "after_stat(var)" references, or constants. A constant is
    mapped like a one-level variable, as aes(color = "blue") is in ggplot2.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True, populate_by_name=True, extra="forbid")

    x: Any = None
    y: Any = None
    color: Any = Field(default=None, alias="colour")
    fill: Any = None
    shape: Any = None
    size: Any = None
    alpha: Any = None
    linetype: Any = None
    group: Any = None

    def mapped(self) -> Dict[str, Any]:
        return {k: getattr(self, k) for k in AESTHETICS if getattr(self, k) is not None}

    def merged(self, local: "Aes") -> "Aes":
        values = self.mapped()
        values.update(local.mapped())
        return Aes.model_validate(values)


class Layer(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True, populate_by_name=True, extra="forbid")

    name: str = ""
    geom: str
    stat: str = "identity"
    position: str = "identity"
    mapping: Aes = Field(default_factory=Aes)
    data: Optional[pd.DataFrame] = None
    inherit_aes: bool = True

    # constant aesthetics
    color: Optional[str] = Field(default=None, alias="colour")
    fill: Optional[str] = None
    shape: Optional[Union[int, str]] = None
    size: Optional[float] = None
    alpha: Optional[float] = None
    stroke: Optional[float] = None
    linewidth: Optional[float] = None
    linetype: Optional[str] = None

    # geom / stat parameters
    width: Optional[float] = None
    height: Optional[float] = None
    binwidth: Optional[float] = None
    bins: Optional[int] = None
    center: Optional[float] = None
    boundary: Optional[float] = None
    method: Optional[str] = None
    se: bool = True
    level: float = 0.95
    span: float = 0.75
    na_rm: bool = False
    varwidth: bool = False
    show_legend: Optional[bool] = None
    fun: Any = None
    fun_min: Any = None
    fun_max: Any = None
    scale: float = 1.0
    seed: Optional[int] = None

    @field_validator("geom")
    @classmethod
    def _known_geom(cls, v: str) -> str:
        if v not in GEOMS:
            raise ValueError(f"Unknown geom: {v}")
        return v

    @field_validator("stat")
    @classmethod
    def _known_stat(cls, v: str) -> str:
        if v not in STATS:
            raise ValueError(f"Unknown stat: {v}")
        return v

    @field_validator("position")
    @classmethod
    def _known_position(cls, v: str) -> str:
        if v not in POSITIONS:
            raise ValueError(f"Unknown position: {v}")
        return v

    @property
    def label(self) -> str:
        return self.name or f"geom_{self.geom}"


def parse_facets(formula: Union[str, List[str]]) -> Tuple[List[str], List[str]]:
    """Split a facet formula into (rows, cols).

    "drv ~ cyl" -> (["drv"], ["cyl"]); "drv ~ ." -> (["drv"], []);
    "~cyl" -> ([], ["cyl"]); "a + b" / ["a", "b"] -> ([], ["a", "b"]).
    """
    if isinstance(formula, (list, tuple)):
        return [], [str(v) for v in formula]

    def side(text: str) -> List[str]:
        names = [t.strip() for t in text.split("+")]
        return [n for n in names if n and n != "."]

    if "~" in formula:
        lhs, _, rhs = formula.partition("~")
        return side(lhs), side(rhs)
    return [], side(formula)


class Facet(BaseModel):
    kind: Literal["wrap", "grid"] = "wrap"
    rows: List[str] = Field(default_factory=list)
    cols: List[str] = Field(default_factory=list)
    ncol: Optional[int] = None
    nrow: Optional[int] = None

    def variables(self) -> List[str]:
        return list(self.rows) + list(self.cols)


class Coord(BaseModel):
    kind: Literal["cartesian", "flip", "polar"] = "cartesian"
    xlim: Optional[Tuple[float, float]] = None
    ylim: Optional[Tuple[float, float]] = None
    theta: Literal["x", "y"] = "x"


class Labs(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    title: Optional[str] = None
    subtitle: Optional[str] = None
    caption: Optional[str] = None
    x: Optional[str] = None
    y: Optional[str] = None
    color: Optional[str] = Field(default=None, alias="colour")
    fill: Optional[str] = None
    shape: Optional[str] = None
    size: Optional[str] = None
    alpha: Optional[str] = None
    linetype: Optional[str] = None

    def updated(self, other: "Labs") -> "Labs":
        values = self.model_dump(exclude_none=True)
        values.update(other.model_dump(exclude_none=True))
        return Labs.model_validate(values)


class Theme(BaseModel):
    aspect_ratio: Optional[float] = None
    style: Optional[str] = None
    legend_position: Optional[Literal["right", "none"]] = None

    def updated(self, other: "Theme") -> "Theme":
        values = self.model_dump(exclude_none=True)
        values.update(other.model_dump(exclude_none=True))
        return Theme.model_validate(values)


class PlotSpec(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    data: Optional[pd.DataFrame] = None
    mapping: Aes = Field(default_factory=Aes)
    layers: List[Layer] = Field(default_factory=list)
    facet: Optional[Facet] = None
    coord: Coord = Field(default_factory=Coord)
    labs: Labs = Field(default_factory=Labs)
    theme: Theme = Field(default_factory=Theme)
