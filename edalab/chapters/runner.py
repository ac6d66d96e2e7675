from __future__ import annotations

import re
from pathlib import Path
from typing import Any, List, Optional, Union

import pandas as pd

from edalab.config import settings


class ChapterRun:
    """Output of one chapter run: printed sections plus the figures written to disk."""

    def __init__(self, slug: str, output_dir: Optional[Union[str, Path]] = None, echo: bool = True):
        self.slug = slug
        self.output_dir = Path(output_dir or settings.output_dir) / slug
        self.echo = echo
        self.figures: List[Path] = []
        self.sections: List[str] = []

    def section(self, title: str) -> None:
        self.sections.append(title)
        self._print(f"\n# {title} " + "-" * max(0, 70 - len(title)))

    def show(self, obj: Any, rows: int = 10) -> None:
        if isinstance(obj, pd.DataFrame):
            text = f"# A data frame: {obj.shape[0]:,} x {obj.shape[1]}\n{obj.head(rows).to_string(max_cols=12)}"
        else:
            text = str(obj)
        self._print(text)

    def figure(self, plot: Any, name: str, **kwargs: Any) -> Path:
        slug = re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")
        path = self.output_dir / f"{len(self.figures) + 1:02d}-{slug}.png"
        plot.save(path, **kwargs)
        self.figures.append(path)
        return path

    def _print(self, text: str) -> None:
        if self.echo:
            print(text)
