"""Chapter 1: data visualization with the penguins data."""

from pathlib import Path
from typing import Optional, Union

from edalab.chapters.runner import ChapterRun
from edalab.datasets import dim, load_dataset
from edalab.engine.profiling import glimpse, summary
from edalab.plots import PlotSpecError, aes, geom_bar, geom_boxplot, geom_point, geom_smooth, ggplot, labs


def main(output_dir: Optional[Union[str, Path]] = None, echo: bool = True) -> ChapterRun:
    run = ChapterRun("ch01", output_dir, echo=echo)
    penguins = load_dataset("penguins")

    run.section("The penguins data frame")
    run.show(glimpse(penguins))
    run.show(summary(penguins))

    run.section("Creating a plot")
    # a blank canvas
    run.figure(ggplot(data=penguins), "blank canvas")

    # axes but no data yet; a mapping always comes from aes()
    base = ggplot(data=penguins, mapping=aes(x="flipper_length_mm", y="body_mass_g"))
    run.figure(base, "axes only")

    run.figure(base + geom_point(), "flipper vs mass")

    # one color per species
    by_species = ggplot(data=penguins, mapping=aes(x="flipper_length_mm", y="body_mass_g", color="species"))
    run.figure(by_species + geom_point(), "flipper vs mass by species")

    # the global color mapping is passed down, so there is one line per species
    run.figure(by_species + geom_point() + geom_smooth(method="lm"), "lm per species")

    # mapping color locally in geom_point() gives a single line for all points
    single = base + geom_point(mapping=aes(color="species", shape="species")) + geom_smooth(method="lm")
    run.figure(single, "lm overall")

    run.figure(
        single
        + labs(
            title="Body mass and flipper length",
            subtitle="Dimensions for Adelie, Chinstrap, and Gentoo Penguins",
            x="Flipper length (mm)",
            y="Body mass (g)",
            color="Species",
            shape="Species",
        ),
        "labelled",
    )

    run.section("1.2.5 Exercises")
    # 1 - rows and columns
    run.show(dim(penguins))

    # 2 - bill_depth_mm is the bill depth in millimeters

    # 3 - bill depth against bill length: species form three separate clusters
    bills = ggplot(data=penguins, mapping=aes(x="bill_length_mm", y="bill_depth_mm", color="species"))
    run.figure(bills + geom_point(), "bill length vs depth")

    # 4 - species vs bill depth: points pile up on three lines, a boxplot reads better
    by_depth = ggplot(data=penguins, mapping=aes(x="species", y="bill_depth_mm"))
    run.figure(by_depth + geom_point(), "species vs bill depth points")
    run.figure(by_depth + geom_boxplot(), "species vs bill depth boxplot")

    # 5 - geom_point() without x and y fails: the aesthetics are missing
    try:
        (ggplot(data=penguins) + geom_point()).draw()
    except PlotSpecError as exc:
        run.show(f"Error: {exc}")

    # 6 - na_rm=True drops the missing rows without a warning
    run.figure(bills + geom_point(na_rm=True), "na rm")

    # 7 - caption, and a continuous color mapped at the point layer only
    run.figure(
        bills + geom_point(na_rm=True) + labs(caption="Data come from the palmerpenguins package."),
        "caption",
    )
    run.figure(
        base + geom_point(mapping=aes(color="bill_depth_mm")) + geom_smooth(method="loess"),
        "loess with bill depth",
    )

    run.section("Shorter calls")
    # positional data and mapping arguments
    run.figure(ggplot(penguins, aes(x="flipper_length_mm", y="body_mass_g")) + geom_point(), "positional")

    mpg = load_dataset("mpg")
    run.figure(ggplot(mpg, aes(x="class")) + geom_bar(), "mpg class counts")
    run.figure(ggplot(mpg, aes(x="cty", y="hwy")) + geom_point(), "mpg-plot")
    return run


if __name__ == "__main__":
    main()
