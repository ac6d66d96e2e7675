from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from edalab.models.pipelines import PipelineStep
from edalab.plots.specs import Coord, Labs, Theme


class LayerRequest(BaseModel):
    geom: str
    mapping: Dict[str, Any] = Field(default_factory=dict)
    # constants and stat parameters: color, size, binwidth, method, position ...
    params: Dict[str, Any] = Field(default_factory=dict)


class FacetRequest(BaseModel):
    kind: Literal["wrap", "grid"] = "wrap"
    # "~cyl", "drv ~ cyl", "drv ~ ."
    formula: str
    ncol: Optional[int] = None


class PlotRequest(BaseModel):
    steps: List[PipelineStep] = Field(default_factory=list)
    mapping: Dict[str, Any] = Field(default_factory=dict)
    layers: List[LayerRequest] = Field(default_factory=list)
    facet: Optional[FacetRequest] = None
    coord: Optional[Coord] = None
    labs: Optional[Labs] = None
    theme: Optional[Theme] = None

    width: Optional[float] = Field(default=None, gt=0, le=40)
    height: Optional[float] = Field(default=None, gt=0, le=40)
    dpi: Optional[int] = Field(default=None, gt=0, le=600)
