"""Chapter 3: data transformation with dplyr-style verbs on the flights data.

The verbs run lazily against DuckDB: db.frame() wraps the in-memory data frame
and every verb adds one step to the generated SELECT.
"""

from pathlib import Path
from typing import Optional, Union

from edalab.chapters.runner import ChapterRun
from edalab.datasets import load_dataset
from edalab.engine.database import Database
from edalab.engine.profiling import glimpse, summary
from edalab.transformers.dsl import col, desc, mean, n


def main(output_dir: Optional[Union[str, Path]] = None, echo: bool = True) -> ChapterRun:
    run = ChapterRun("ch03", output_dir, echo=echo)
    raw = load_dataset("flights")

    run.section("The flights data frame")
    run.show(summary(raw))
    run.show(glimpse(raw))
    # wide data: only the first rows and the columns that fit are shown
    run.show(raw.head(6))

    with Database.connect() as db:
        flights = db.frame(raw, name="flights")

        # the first argument is always a table, the rest name columns,
        # the output is always a new table; chaining replaces the |> pipe
        iah = flights.filter(col("dest") == "IAH")
        run.show(glimpse(iah))
        run.show(glimpse(iah.group_by("year", "month", "day")))
        run.show(glimpse(
            iah.group_by("year", "month", "day").summarize(arr_delay=mean("arr_delay"))
        ))

        run.section("Rows: filter, arrange, distinct")
        run.show(flights.filter(col("dep_delay") > 120))
        # departed on January 1st
        run.show(flights.filter((col("month") == 1) & (col("day") == 1)))
        # departed in January or February
        run.show(flights.filter((col("month") == 1) | (col("month") == 2)))
        run.show(flights.filter(col("month").isin([1, 2])))

        run.show(flights.arrange("year", "month", "day", "dep_time"))
        run.show(flights.arrange(desc("dep_delay")))

        run.show(flights.distinct().count_rows())
        # unique origin and destination pairs
        run.show(flights.distinct("origin", "dest"))
        run.show(flights.distinct("origin", "dest", keep_all=True))

        run.section("3.2.5 Exercises")
        # arrival delay of two or more hours
        run.show(flights.filter(col("arr_delay") > 120))
        # flew to Houston
        run.show(glimpse(flights.filter(col("dest").isin(["IAH", "HOU"]))))
        # operated by United, American or Delta
        run.show(glimpse(flights.filter(col("carrier").isin(["UA", "AA", "DL"]))))
        # departed in summer
        run.show(glimpse(flights.filter(col("month").isin([7, 8, 9]))))
        # arrived more than two hours late but didn't leave late
        run.show(glimpse(flights.filter((col("dep_delay") <= 0) & (col("arr_delay") >= 120))))
        # delayed by at least an hour but made up over 30 minutes in flight
        run.show(glimpse(flights.filter((col("dep_delay") >= 60) & (col("arr_delay") <= 30))))
        # longest departure delays, then earliest in the morning
        run.show(glimpse(flights.arrange(desc("dep_delay")).arrange("hour", "minute")))

        run.section("Columns: mutate, select, rename, relocate")
        gain = col("dep_delay") - col("arr_delay")
        speed = col("distance") / col("air_time") * 60
        run.show(flights.mutate(gain=gain, speed=speed))
        # new columns on the left instead of the right
        run.show(flights.mutate(gain=gain, speed=speed, _before=1))
        run.show(flights.mutate(gain=gain, speed=speed, _after="day"))
        # later expressions can use earlier ones; keep only the columns involved
        run.show(flights.mutate(
            gain=gain,
            hours=col("air_time") / 60,
            gain_per_hour=col("gain") / col("hours"),
            _keep="used",
        ))

        run.show(flights.select("year", "month", "day"))
        run.show(flights.select("year:day"))
        run.show(flights.select("!year:day"))
        run.show(flights.select("where:character"))
        # starts_with:, ends_with: and contains: match on names
        run.show(flights.select("starts_with:dep", "ends_with:delay"))
        # select() can rename while it selects
        run.show(flights.select(tail_num="tailnum"))
        # rename() keeps every other column
        run.show(flights.rename(tail_num="tailnum"))
        # without columns relocate() changes nothing; the default target is the front
        run.show(flights.relocate())
        run.show(flights.relocate("time_hour", "air_time"))
        run.show(flights.relocate("year:dep_time", after="time_hour"))

        run.section("Groups: group_by, summarize")
        by_month = flights.group_by("month")
        run.show(by_month)
        run.show(by_month.summarize())
        run.show(by_month.summarize(avg_delay=mean("dep_delay")))
        run.show(by_month.summarize(avg_delay=mean("dep_delay"), n=n()))
        run.show(by_month.summarize(avg_delay=mean("dep_delay"), n=n()).show_query())
        # first rows of the table, slice_head()
        run.show(flights.head(1))
    return run


if __name__ == "__main__":
    main()
