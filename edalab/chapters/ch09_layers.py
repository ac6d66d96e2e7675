"""Chapter 9: layers. Aesthetics, geoms, facets, stats, positions and coordinates."""

from pathlib import Path
from typing import Optional, Union

from edalab.chapters.runner import ChapterRun
from edalab.datasets import load_dataset
from edalab.engine.profiling import glimpse
from edalab.plots import (
    aes,
    after_stat,
    coord_flip,
    coord_polar,
    facet_grid,
    facet_wrap,
    geom_bar,
    geom_boxplot,
    geom_density,
    geom_density_ridges,
    geom_histogram,
    geom_jitter,
    geom_point,
    geom_smooth,
    ggplot,
    stat_summary,
    theme,
)


def main(output_dir: Optional[Union[str, Path]] = None, echo: bool = True) -> ChapterRun:
    run = ChapterRun("ch09", output_dir, echo=echo)
    mpg = load_dataset("mpg")
    diamonds = load_dataset("diamonds")

    run.section("Aesthetic mappings")
    run.show(glimpse(mpg))
    run.figure(ggplot(mpg, aes(x="displ", y="hwy", color="class")) + geom_point(), "class as color")

    # mapping an unordered variable (class) to alpha or size warns
    run.figure(ggplot(mpg, aes(x="displ", y="hwy", alpha="class")) + geom_point(), "class as alpha")
    run.figure(ggplot(mpg, aes(x="displ", y="hwy", size="class")) + geom_point(), "class as size")

    # Exercise 1 - pink filled triangles
    pink = geom_point(color="black", shape=24, fill="pink")
    run.figure(ggplot(mpg, aes(x="displ", y="hwy")) + pink, "pink triangles")

    # Exercise 2 - not blue: a value inside aes() is mapped like a one-level
    # variable; set the color outside aes() to get blue points
    run.figure(ggplot(mpg) + geom_point(aes(x="displ", y="hwy", color="blue")), "blue inside aes")

    # Exercise 3 - stroke changes the outline width
    run.figure(
        ggplot(mpg, aes(x="displ", y="hwy")) + geom_point(color="black", shape=24, fill="pink", stroke=2),
        "stroke",
    )

    run.section("Geometric objects")
    # local mappings extend or override the global mapping for that layer only;
    # aesthetics a geom cannot use (shape of a line) are ignored
    base = ggplot(mpg, aes(x="displ", y="hwy"))
    run.figure(base + geom_point(aes(color="class")) + geom_smooth(), "local color")

    # local data overrides the plot data for one layer
    two_seaters = mpg[mpg["class"] == "2seater"]
    run.figure(
        base
        + geom_point()
        + geom_point(data=two_seaters, color="red")
        + geom_point(data=two_seaters, shape="circle open", size=3, color="red"),
        "two seaters",
    )

    # highway mileage is bimodal and right skewed; the boxplot shows two outliers
    hwy = ggplot(mpg, aes(x="hwy"))
    run.figure(hwy + geom_histogram(binwidth=2), "hwy histogram")
    run.figure(hwy + geom_density(), "hwy density")
    run.figure(hwy + geom_boxplot(), "hwy boxplot")
    run.figure(hwy + geom_density() + geom_boxplot(alpha=0.4), "hwy density and boxplot")

    # ridgeline plots
    run.figure(
        ggplot(mpg, aes(x="hwy", y="drv", fill="drv", color="drv"))
        + geom_density_ridges(alpha=0.5, show_legend=False),
        "ridges",
    )

    # Exercise 4 - recreate the six charts
    run.figure(base + geom_point(size=2) + geom_smooth(se=False), "exercise top left")
    run.figure(base + geom_point(size=2) + geom_smooth(aes(group="drv"), se=False), "exercise top right")
    run.figure(
        base + geom_point(aes(color="drv"), size=2) + geom_smooth(aes(color="drv"), se=False),
        "exercise middle left",
    )
    run.figure(base + geom_point(aes(color="drv"), size=2) + geom_smooth(se=False), "exercise middle right")
    run.figure(
        base + geom_point(aes(color="drv"), size=2) + geom_smooth(aes(linetype="drv"), se=False),
        "exercise bottom left",
    )
    # layer order matters: the white rings are drawn first, under the colored points
    run.figure(
        base
        + geom_point(shape="circle open", size=3, color="white", stroke=2)
        + geom_point(aes(color="drv"), size=2),
        "exercise bottom right",
    )

    run.section("Facets")
    scatter = ggplot(mpg, aes("displ", "hwy")) + geom_point()
    run.figure(scatter + facet_wrap("~cyl"), "facet wrap cyl")
    run.figure(scatter + facet_grid("drv ~ cyl"), "facet grid drv cyl")
    # a period means "do not facet in this direction"
    run.figure(scatter + facet_grid("drv ~ ."), "facet grid drv")
    run.figure(scatter + facet_grid(". ~ cyl"), "facet grid cyl")

    run.section("Statistical transformations")
    # every bar is its own group, so every proportion is 1
    run.figure(ggplot(diamonds, aes(x="cut", y=after_stat("prop"))) + geom_bar(), "prop per bar")
    run.figure(ggplot(diamonds, aes(x="cut", fill="color", y=after_stat("prop"))) + geom_bar(), "prop by color")
    # group = 1 makes the proportions relative to the whole data
    run.figure(ggplot(diamonds, aes(x="cut", y=after_stat("prop"), group=1)) + geom_bar(), "prop overall")

    run.figure(
        ggplot(diamonds) + stat_summary(aes(x="cut", y="depth"), fun_min="min", fun_max="max", fun="median"),
        "depth summary",
    )

    run.section("Position adjustments")
    run.figure(ggplot(mpg, aes(x="drv", color="drv")) + geom_bar(), "bar outline")
    run.figure(ggplot(mpg, aes(x="drv", fill="drv")) + geom_bar(), "bar fill")
    # fill by another variable: the bars stack
    run.figure(ggplot(mpg, aes(x="drv", fill="class")) + geom_bar(), "stacked")

    # identity overlaps the bars: make them transparent, or drop the fill
    run.figure(ggplot(mpg, aes(x="drv", fill="class")) + geom_bar(alpha=1 / 5, position="identity"), "identity alpha")
    run.figure(ggplot(mpg, aes(x="drv", colour="class")) + geom_bar(fill="NA", position="identity"), "identity outline")

    # fill compares proportions, dodge compares individual counts
    run.figure(ggplot(mpg, aes(x="drv", fill="class")) + geom_bar(position="fill"), "position fill")
    run.figure(ggplot(mpg, aes(x="drv", fill="class")) + geom_bar(position="dodge"), "position dodge")

    run.figure(ggplot(mpg, aes(x="displ", y="hwy")) + geom_point(position="jitter"), "jitter")
    run.figure(ggplot(mpg, aes(x="displ", y="hwy")) + geom_jitter(), "geom jitter")

    run.section("Coordinate systems")
    bar = (
        ggplot(data=diamonds)
        + geom_bar(mapping=aes(x="clarity", fill="clarity"), show_legend=False, width=1)
        + theme(aspect_ratio=1)
    )
    run.figure(bar + coord_flip(), "coord flip")
    run.figure(bar + coord_polar(), "coord polar")

    # the layered grammar: data, geom, mapping, stat, position,
    # coordinate system, facets and theme describe any plot
    return run


if __name__ == "__main__":
    main()
