"""Chapter scripts: each module runs one chapter top to bottom via main()."""

import importlib
from types import ModuleType
from typing import Dict, List, Tuple

CHAPTERS: Dict[int, Tuple[str, str]] = {
    1: ("ch01_data_viz", "Data visualization"),
    3: ("ch03_data_transformation", "Data transformation"),
    9: ("ch09_layers", "Layers"),
    10: ("ch10_eda", "Exploratory data analysis"),
    21: ("ch21_databases", "Databases"),
}


def list_chapters() -> List[Tuple[int, str, str]]:
    return [(number, module, title) for number, (module, title) in sorted(CHAPTERS.items())]


def get_chapter(number: int) -> ModuleType:
    try:
        module, _ = CHAPTERS[number]
    except KeyError:
        raise ValueError(f"Unknown chapter: {number}. Available: {sorted(CHAPTERS)}") from None
    return importlib.import_module(f"{__name__}.{module}")
