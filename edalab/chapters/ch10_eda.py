"""Chapter 10: exploratory data analysis.

EDA is a cycle: ask questions about the data, look for answers by
visualising, transforming and modelling it, then refine the questions.
Two questions are always useful: what variation occurs within a variable,
and what covariation occurs between variables.
"""

from pathlib import Path
from typing import Optional, Union

import numpy as np

from edalab.chapters.runner import ChapterRun
from edalab.datasets import load_dataset
from edalab.engine.database import Database
from edalab.plots import (
    aes,
    after_stat,
    coord_cartesian,
    geom_bin2d,
    geom_boxplot,
    geom_count,
    geom_freqpoly,
    geom_hex,
    geom_histogram,
    geom_point,
    geom_tile,
    ggplot,
)
from edalab.stats.factors import between, cut_width, fct_reorder, if_else
from edalab.transformers.dsl import col


def main(output_dir: Optional[Union[str, Path]] = None, echo: bool = True) -> ChapterRun:
    run = ChapterRun("ch10", output_dir, echo=echo)
    diamonds = load_dataset("diamonds")
    mpg = load_dataset("mpg")

    run.section("Variation")
    run.figure(ggplot(diamonds, aes(x="carat")) + geom_histogram(binwidth=0.5), "carat")

    smaller = diamonds[diamonds["carat"] < 3].reset_index(drop=True)
    # more diamonds at whole and common fractional carats, and more slightly
    # right of each peak than left of it
    run.figure(ggplot(smaller, aes(x="carat")) + geom_histogram(binwidth=0.01), "smaller carat")

    run.section("Unusual values")
    y_hist = ggplot(diamonds, aes(x="y")) + geom_histogram(binwidth=0.5)
    run.figure(y_hist, "y")
    # zoom on the y axis; the data outside the limits is kept
    run.figure(y_hist + coord_cartesian(ylim=(0, 50)), "y zoomed")

    with Database.connect() as db:
        unusual = (
            db.frame(diamonds, name="diamonds")
            .filter((col("y") < 3) | (col("y") > 20))
            .select("price", "x", "y", "z")
            .arrange("y")
        )
        run.show(unusual.collect())

        flights = load_dataset("flights")
        cancelled = (
            db.frame(flights, name="flights")
            .mutate(
                cancelled=col("dep_time").is_null(),
                sched_hour=col("sched_dep_time") // 100,
                sched_min=col("sched_dep_time") % 100,
                sched_dep_time=col("sched_hour") + col("sched_min") / 60,
            )
            .collect()
        )

    # dropping whole rows discards good measurements too
    diamonds2 = diamonds[between(diamonds["y"], 3, 20)]
    run.show(f"{len(diamonds) - len(diamonds2)} rows dropped")

    # replacing the unusual values with missing ones is the better option
    diamonds2 = diamonds.assign(y=if_else((diamonds["y"] < 3) | (diamonds["y"] > 20), np.nan, diamonds["y"]))
    xy = ggplot(diamonds2, aes(x="x", y="y"))
    # missing values are removed with a warning
    run.figure(xy + geom_point(), "x vs y")
    run.figure(xy + geom_point(na_rm=True), "x vs y na rm")

    # far more flights than cancellations, so the two lines are hard to compare
    run.figure(
        ggplot(cancelled, aes(x="sched_dep_time")) + geom_freqpoly(aes(color="cancelled"), binwidth=1 / 4),
        "cancelled flights",
    )

    run.section("Covariation: a categorical and a numerical variable")
    price = ggplot(diamonds, aes(x="price"))
    run.figure(price + geom_freqpoly(aes(color="cut"), binwidth=500, linewidth=0.75), "price by cut")
    # density standardises each polygon to an area of one
    run.figure(
        ggplot(diamonds, aes(x="price", y=after_stat("density")))
        + geom_freqpoly(aes(color="cut"), binwidth=500, linewidth=0.75),
        "price density by cut",
    )
    run.figure(ggplot(diamonds, aes(x="cut", y="price")) + geom_boxplot(), "price boxplot by cut")

    # class is unordered; reorder it by the median of hwy to see the trend
    run.figure(ggplot(mpg, aes(x="class", y="hwy")) + geom_boxplot(), "hwy by class")
    by_median = fct_reorder(mpg["class"], mpg["hwy"], "median")
    run.figure(ggplot(mpg, aes(x=by_median, y="hwy")) + geom_boxplot(), "hwy by class reordered")
    # long names read better on the y axis
    run.figure(ggplot(mpg, aes(x="hwy", y=by_median)) + geom_boxplot(), "hwy by class flipped")

    run.section("Covariation: two categorical variables")
    run.figure(ggplot(diamonds, aes(x="cut", y="color")) + geom_count(), "cut color count")

    with Database.connect() as db:
        counts = db.frame(diamonds, name="diamonds").count("color", "cut").collect()
    run.show(counts)
    run.figure(ggplot(counts, aes(x="color", y="cut")) + geom_tile(aes(fill="n")), "cut color tiles")

    run.section("Covariation: two numerical variables")
    carat_price = ggplot(smaller, aes(x="carat", y="price"))
    run.figure(carat_price + geom_point(), "carat price")
    # points overplot as the data grows; transparency helps a little
    run.figure(carat_price + geom_point(alpha=1 / 100), "carat price alpha")
    # binning in two dimensions helps more
    run.figure(carat_price + geom_bin2d(), "carat price bin2d")
    run.figure(carat_price + geom_hex(), "carat price hex")

    # or bin one variable so it acts like a categorical one
    carat_bins = cut_width(smaller["carat"], 0.1)
    run.figure(carat_price + geom_boxplot(aes(group=carat_bins)), "carat bins")
    # varwidth makes the box width follow the number of points
    run.figure(carat_price + geom_boxplot(aes(group=carat_bins), varwidth=True), "carat bins varwidth")
    return run


if __name__ == "__main__":
    main()
