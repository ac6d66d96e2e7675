import warnings

import pandas as pd
import pytest
from matplotlib.figure import Figure

from edalab.plots import (
    MissingValuesWarning,
    PlotSpecError,
    PlotWarning,
    aes,
    after_stat,
    coord_cartesian,
    coord_flip,
    coord_polar,
    facet_grid,
    facet_wrap,
    geom_bar,
    geom_boxplot,
    geom_count,
    geom_density_ridges,
    geom_histogram,
    geom_point,
    geom_smooth,
    ggplot,
    ggsave,
    labs,
    render_png,
    stat_summary,
    theme,
)
from edalab.plots.render import _binrange
from edalab.plots.specs import Layer, parse_facets


def _visible_axes(fig):
    return [ax for ax in fig.axes if ax.get_visible()]


def test_adding_components_returns_new_plot(mpg):
    base = ggplot(mpg, aes(x="displ", y="hwy"))
    plot = base + geom_point() + [geom_smooth(), labs(title="Engines")]
    assert len(base.spec.layers) == 0
    assert [layer.label for layer in plot.spec.layers] == ["geom_point", "geom_smooth"]
    assert plot.spec.labs.title == "Engines"
    assert repr(plot) == "<Plot: geom_point, geom_smooth>"
    with pytest.raises(TypeError, match="Cannot add int"):
        base + 3


def test_layer_validation():
    with pytest.raises(ValueError, match="Unknown position"):
        geom_bar(position="sideways")
    assert geom_point(colour="blue").color == "blue"


def test_parse_facets():
    assert parse_facets("~cyl") == ([], ["cyl"])
    assert parse_facets("drv ~ cyl") == (["drv"], ["cyl"])
    assert parse_facets("drv ~ .") == (["drv"], [])


def test_draw_scatter_with_smooth(penguins):
    plot = (
        ggplot(penguins, aes(x="flipper_length_mm", y="body_mass_g"))
        + geom_point(aes(color="species", shape="species"), na_rm=True)
        + geom_smooth(method="lm", na_rm=True)
        + labs(x="Flipper length (mm)", y="Body mass (g)", color="Species", shape="Species")
    )
    fig = plot.draw()
    assert isinstance(fig, Figure)
    assert len(_visible_axes(fig)) == 1


def test_missing_values_warn_unless_na_rm(penguins):
    plot = ggplot(penguins, aes(x="flipper_length_mm", y="body_mass_g"))
    with pytest.warns(MissingValuesWarning, match="Removed 2 rows"):
        (plot + geom_point()).draw()
    with warnings.catch_warnings():
        warnings.simplefilter("error", MissingValuesWarning)
        (plot + geom_point(na_rm=True)).draw()


def test_missing_aesthetic(mpg):
    with pytest.raises(PlotSpecError, match="missing aesthetics: y"):
        (ggplot(mpg, aes(x="displ")) + geom_point()).draw()


def test_alpha_for_discrete_variable_warns(mpg):
    with pytest.warns(PlotWarning, match="alpha for a discrete variable"):
        (ggplot(mpg, aes(x="displ", y="hwy", alpha="class")) + geom_point()).draw()


def test_polar_supports_bars_only(diamonds, mpg):
    bar = ggplot(diamonds, aes(x="clarity", fill="clarity")) + geom_bar(show_legend=False, width=1)
    assert isinstance((bar + theme(aspect_ratio=1) + coord_polar()).draw(), Figure)
    with pytest.raises(PlotSpecError, match="coord_polar"):
        (ggplot(mpg, aes(x="displ", y="hwy")) + geom_smooth() + coord_polar()).draw()


def test_facets(mpg):
    scatter = ggplot(mpg, aes(x="displ", y="hwy")) + geom_point()
    wrap = (scatter + facet_wrap("~cyl")).draw()
    assert len(_visible_axes(wrap)) == mpg["cyl"].nunique()
    grid = (scatter + facet_grid("drv ~ cyl")).draw()
    assert len(_visible_axes(grid)) == mpg["drv"].nunique() * mpg["cyl"].nunique()


def test_bar_positions_and_flip(mpg):
    for position in ("stack", "fill", "dodge", "identity"):
        plot = ggplot(mpg, aes(x="drv", fill="class")) + geom_bar(position=position, alpha=0.5)
        assert isinstance(plot.draw(), Figure)
    prop = ggplot(mpg, aes(x="class", y=after_stat("prop"), group=1)) + geom_bar()
    assert isinstance((prop + coord_flip()).draw(), Figure)


def test_distribution_layers(diamonds, mpg):
    hist = ggplot(diamonds, aes(x="y")) + geom_histogram(binwidth=0.5) + coord_cartesian(ylim=(0, 50))
    assert isinstance(hist.draw(), Figure)
    box = ggplot(mpg, aes(x="hwy", y="drv", fill="drv")) + geom_boxplot(alpha=0.5)
    assert isinstance(box.draw(), Figure)
    ridges = ggplot(mpg, aes(x="hwy", y="drv")) + geom_density_ridges(show_legend=False)
    assert isinstance(ridges.draw(), Figure)
    summary = ggplot(diamonds, aes(x="cut", y="depth")) + stat_summary(fun_min="min", fun_max="max", fun="median")
    assert isinstance(summary.draw(), Figure)


def test_save_and_render_png(tmp_path, mpg):
    plot = ggplot(mpg, aes(x="displ", y="hwy")) + geom_point()
    path = ggsave(tmp_path / "figs" / "mpg-plot.png", plot, width=4, height=3)
    assert path.exists()
    assert path.read_bytes()[:4] == b"\x89PNG"
    assert render_png(plot, width=3, height=2)[:4] == b"\x89PNG"


def test_polar_panels_do_not_share_axes(mpg):
    plot = ggplot(mpg, aes(x="class", fill="class")) + geom_bar(width=1) + facet_wrap("~drv") + coord_polar()
    fig = plot.draw()
    axes = _visible_axes(fig)
    assert len(axes) == mpg["drv"].nunique()
    assert all(ax.name == "polar" for ax in axes)


def test_layers_are_drawn_by_seaborn(mpg):
    fig = (ggplot(mpg, aes(x="hwy")) + geom_histogram(binwidth=2)).draw()
    ax = fig.axes[0]
    assert len(ax.patches) > 0
    assert ax.get_xlabel() == "hwy"
    assert ax.get_ylabel() == "count"

    fig = (ggplot(mpg, aes(x="displ", y="hwy")) + geom_point() + coord_flip()).draw()
    ax = fig.axes[0]
    assert (ax.get_xlabel(), ax.get_ylabel()) == ("hwy", "displ")
    assert len(ax.collections) == 1


def test_count_sizes_by_number_of_rows(diamonds):
    fig = (ggplot(diamonds, aes(x="cut", y="color")) + geom_count()).draw()
    points = fig.axes[0].collections[0]
    assert len(points.get_offsets()) == diamonds.groupby(["cut", "color"], observed=True).ngroups


def test_binrange_centres_bins_on_multiples_of_binwidth():
    values = pd.Series([0.2, 3.9])
    assert _binrange(values, 1.0, None, None) == (-0.5, 3.9)
    assert _binrange(values, 1.0, 0.0, None) == (0.0, 3.9)
    assert _binrange(values, 2.0, None, 1.0) == (0.0, 3.9)
    with pytest.raises(PlotSpecError):
        _binrange(values, 0.0, None, None)


def test_shapes_and_colours():
    with pytest.raises(PlotSpecError, match="Unknown shape"):
        (ggplot(pd.DataFrame({"x": [1, 2], "y": [1, 2]}), aes(x="x", y="y")) + geom_point(shape="blob")).draw()
    plot = ggplot(pd.DataFrame({"x": [1, 2], "y": [1, 2]}), aes(x="x", y="y"))
    fig = (plot + geom_point(color="black", shape=24, fill="pink", stroke=2)).draw()
    assert isinstance(fig, Figure)
    assert isinstance(geom_point(), Layer)
