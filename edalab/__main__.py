"""
edalab command line.

Examples:
    python -m edalab chapters
    python -m edalab run 3 --output-dir out
    python -m edalab glimpse diamonds
    python -m edalab sql diamonds "SELECT cut, COUNT(*) AS n FROM diamonds GROUP BY cut"
"""

import argparse
import logging
import sys
from typing import List, Optional

import duckdb

from edalab.chapters import get_chapter, list_chapters
from edalab.datasets import UnknownDatasetError, load_dataset
from edalab.engine.database import Database
from edalab.engine.profiling import glimpse
from edalab.logging_config import setup_logging

logger = logging.getLogger("edalab.cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="edalab",
        description="Exploratory data analysis chapters, datasets and SQL",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--log-level", default=None, help="Logging level (default: LOG_LEVEL or INFO)")
    parser.add_argument("--log-file", default=None, help="Also write logs to this file")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("chapters", help="List the chapters")

    run = sub.add_parser("run", help="Run one chapter, printing tables and saving figures")
    run.add_argument("chapter", type=int, help="Chapter number")
    run.add_argument("--output-dir", default=None, help="Where figures are saved (default: OUTPUT_DIR)")

    g = sub.add_parser("glimpse", help="Print a transposed preview of a dataset")
    g.add_argument("dataset")
    g.add_argument("--width", type=int, default=80)

    sql = sub.add_parser("sql", help="Run a SELECT against a dataset loaded as a table of the same name")
    sql.add_argument("dataset")
    sql.add_argument("query")
    sql.add_argument("--max-rows", type=int, default=20, help="Rows to print (default: 20)")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level, args.log_file)

    try:
        if args.command == "chapters":
            for number, module, title in list_chapters():
                print(f"{number:>3}  {title:<28} edalab.chapters.{module}")
        elif args.command == "run":
            run = get_chapter(args.chapter).main(output_dir=args.output_dir)
            print(f"\n{len(run.figures)} figures saved to {run.output_dir}")
        elif args.command == "glimpse":
            print(glimpse(load_dataset(args.dataset), width=args.width))
        elif args.command == "sql":
            with Database.connect() as db:
                db.write_table(args.dataset, load_dataset(args.dataset))
                df = db.get_query(args.query)
            print(df.head(args.max_rows).to_string())
            if len(df) > args.max_rows:
                print(f"# ... with {len(df) - args.max_rows:,} more rows")
    except UnknownDatasetError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2
    except (ValueError, duckdb.Error) as e:
        logger.error("%s", e)
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
