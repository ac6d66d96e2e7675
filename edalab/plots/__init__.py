"""Grammar-of-graphics plotting on matplotlib / seaborn."""

from .grammar import (
    Plot,
    aes,
    after_stat,
    coord_cartesian,
    coord_flip,
    coord_polar,
    facet_grid,
    facet_wrap,
    geom_bar,
    geom_bin2d,
    geom_boxplot,
    geom_col,
    geom_count,
    geom_density,
    geom_density_ridges,
    geom_freqpoly,
    geom_hex,
    geom_histogram,
    geom_jitter,
    geom_line,
    geom_point,
    geom_smooth,
    geom_tile,
    ggplot,
    ggsave,
    labs,
    stat_summary,
    theme,
)
from .render import draw, render_png, save
from .specs import MissingValuesWarning, PlotSpec, PlotSpecError, PlotWarning

__all__ = [
    "MissingValuesWarning",
    "Plot",
    "PlotSpec",
    "PlotSpecError",
    "PlotWarning",
    "aes",
    "after_stat",
    "coord_cartesian",
    "coord_flip",
    "coord_polar",
    "draw",
    "facet_grid",
    "facet_wrap",
    "geom_bar",
    "geom_bin2d",
    "geom_boxplot",
    "geom_col",
    "geom_count",
    "geom_density",
    "geom_density_ridges",
    "geom_freqpoly",
    "geom_hex",
    "geom_histogram",
    "geom_jitter",
    "geom_line",
    "geom_point",
    "geom_smooth",
    "geom_tile",
    "ggplot",
    "ggsave",
    "labs",
    "render_png",
    "save",
    "stat_summary",
    "theme",
]
