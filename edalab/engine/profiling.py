"""
Dataset Profiling Module

First-look tools for a table: glimpse() (one line per column with its type
and leading values), summary() (per-column distribution summary) and a
DuckDB-side profile used by the HTTP API.

Adaptive Sampling Strategy for the DuckDB profile:
- Datasets <= 100K rows: 100% scan
- Datasets 100K-1M rows: 5% sample with 10K minimum
- Datasets > 1M rows: 50K sample cap
"""

from __future__ import annotations

from typing import Any, Dict, List

import numpy as np
import pandas as pd
from pandas.api import types as ptypes

from edalab.stats.descriptive import DescriptiveStats


def infer_role(dtype: str) -> str:
    """
    Infer the semantic role of a column based on its data type.

    Examples:
        'INTEGER' -> 'numeric'
        'DOUBLE' -> 'numeric'
        'VARCHAR' -> 'categorical'
        'TIMESTAMP' -> 'datetime'
        'float64' -> 'numeric'
    """
    dtype_lower = dtype.lower()

    if any(keyword in dtype_lower for keyword in ["int", "float", "double", "decimal", "numeric", "real"]):
        return "numeric"

    if any(keyword in dtype_lower for keyword in ["date", "time", "timestamp"]):
        return "datetime"

    # strings, enums, booleans
    return "categorical"


# ============================================================================
# glimpse()
# ============================================================================

def type_abbrev(series: pd.Series) -> str:
    """Short type tag in the style of tibble printing."""
    dtype = series.dtype
    if isinstance(dtype, pd.CategoricalDtype):
        return "ord" if dtype.ordered else "fct"
    if ptypes.is_bool_dtype(dtype):
        return "lgl"
    if ptypes.is_integer_dtype(dtype):
        return "int"
    if ptypes.is_float_dtype(dtype):
        return "dbl"
    if ptypes.is_datetime64_any_dtype(dtype):
        return "dttm"
    if ptypes.is_timedelta64_dtype(dtype):
        return "drtn"
    return "chr"


def _format_value(value: Any, tag: str) -> str:
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return "NA"
    if tag == "chr":
        return f'"{value}"'
    if tag == "dbl":
        return f"{value:g}"
    if tag == "dttm":
        return pd.Timestamp(value).strftime("%Y-%m-%d %H:%M:%S")
    return str(value)


def glimpse(data: Any, width: int = 80) -> str:
    """Transposed preview: every column on one line, as many values as fit.

    Accepts a pandas DataFrame or a lazy table (anything with count_rows()
    and head()); lazy tables only pull the preview rows.
    """
    if isinstance(data, pd.DataFrame):
        n_rows = len(data)
        preview = data.head(50)
    else:
        n_rows = data.count_rows()
        preview = data.head(50).collect()

    lines = [f"Rows: {n_rows:,}", f"Columns: {preview.shape[1]:,}"]
    groups = getattr(data, "attrs", {}).get("groups") if isinstance(data, pd.DataFrame) else data.group_vars()
    if groups:
        lines.append(f"Groups: {', '.join(groups)}")
    if preview.shape[1] == 0:
        return "\n".join(lines)

    name_width = max(len(str(c)) for c in preview.columns)
    for name in preview.columns:
        series = preview[name]
        tag = type_abbrev(series)
        prefix = f"$ {str(name).ljust(name_width)} <{tag}> "
        budget = max(width - len(prefix), 10)
        shown: List[str] = []
        used = 0
        for value in series.tolist():
            text = _format_value(value, tag)
            extra = len(text) + (2 if shown else 0)
            if used + extra > budget:
                break
            shown.append(text)
            used += extra
        body = ", ".join(shown)
        if len(shown) < len(series):
            body += ", …"
        lines.append(prefix + body)
    return "\n".join(lines)


# ============================================================================
# summary()
# ============================================================================

def summary(df: pd.DataFrame, max_levels: int = 6) -> pd.DataFrame:
    """Per-column summary table.

    Numeric columns get Min / 1st Qu. / Median / Mean / 3rd Qu. / Max and a
    count of missing values; other columns get their most frequent levels.
    Cells are display strings, one column per input column.
    """
    out: Dict[str, List[str]] = {}
    for name in df.columns:
        series = df[name]
        if ptypes.is_numeric_dtype(series) and not ptypes.is_bool_dtype(series):
            d = DescriptiveStats.full_descriptives(series.to_numpy(dtype=float))
            if "error" in d:
                cells = ["Min.   : NA", f"NA's   : {int(series.isna().sum())}"]
            else:
                cells = [
                    f"Min.   : {d['min']:.4g}",
                    f"1st Qu.: {d['q1']:.4g}",
                    f"Median : {d['median']:.4g}",
                    f"Mean   : {d['mean']:.4g}",
                    f"3rd Qu.: {d['q3']:.4g}",
                    f"Max.   : {d['max']:.4g}",
                ]
                if d["n_missing"]:
                    cells.append(f"NA's   : {d['n_missing']}")
        elif ptypes.is_datetime64_any_dtype(series):
            clean = series.dropna()
            cells = [f"Min.   : {clean.min()}", f"Max.   : {clean.max()}"] if len(clean) else ["Min.   : NA"]
            if series.isna().any():
                cells.append(f"NA's   : {int(series.isna().sum())}")
        else:
            counts = series.value_counts(dropna=True, sort=True)
            if isinstance(series.dtype, pd.CategoricalDtype) and len(counts) <= max_levels:
                counts = counts.reindex(series.cat.categories, fill_value=0)
            cells = [f"{level}: {count}" for level, count in counts.head(max_levels).items()]
            rest = int(counts.iloc[max_levels:].sum()) if len(counts) > max_levels else 0
            if rest:
                cells.append(f"(Other): {rest}")
            if series.isna().any():
                cells.append(f"NA's: {int(series.isna().sum())}")
        out[str(name)] = cells

    depth = max((len(v) for v in out.values()), default=0)
    return pd.DataFrame({k: v + [""] * (depth - len(v)) for k, v in out.items()})


# ============================================================================
# DuckDB profile
# ============================================================================

def _determine_sample_strategy(n_rows: int) -> tuple[int, bool]:
    """
    Determine sampling strategy based on dataset size.

    Returns:
        Tuple of (sample_size, use_sampling)

    Examples:
        50,000 rows -> (50000, False)
        500,000 rows -> (25000, True)
        5,000,000 rows -> (50000, True)
    """
    if n_rows <= 100_000:
        return n_rows, False
    elif n_rows <= 1_000_000:
        return max(10_000, int(n_rows * 0.05)), True
    else:
        return 50_000, True


def build_profile(con, view: str, sample_limit: int = 20) -> Dict[str, Any]:
    """
    Build a profile of a table or view using DuckDB.

    Returns:
        {
            "n_rows": 53940,
            "n_cols": 10,
            "schema": [
                {"name": "carat", "dtype": "DOUBLE", "role": "numeric", "missing_pct": 0.0, "unique_count": 273},
                ...
            ],
            "sample_rows": [{"carat": 0.23, ...}, ...]
        }
    """
    schema_rows = con.execute(f"DESCRIBE SELECT * FROM {view}").fetchall()
    schema = [
        {"name": name, "dtype": str(dtype), "role": infer_role(str(dtype)), "missing_pct": 0.0, "unique_count": None}
        for name, dtype, *_ in schema_rows
    ]

    n_rows = int(con.execute(f"SELECT COUNT(*) FROM {view}").fetchone()[0])
    sample_size, use_sampling = _determine_sample_strategy(n_rows)
    source = f"(SELECT * FROM {view} USING SAMPLE {sample_size} ROWS)" if use_sampling else view

    if n_rows > 0 and schema:
        # one pass for every column: AVG of a 0/1 flag is the missing share
        parts = []
        for i, col_info in enumerate(schema):
            quoted = '"' + col_info["name"].replace('"', '""') + '"'
            parts.append(f"AVG(CASE WHEN {quoted} IS NULL THEN 1 ELSE 0 END)::DOUBLE AS m{i}")
            parts.append(f"approx_count_distinct({quoted}) AS u{i}")
        row = con.execute(f"SELECT {', '.join(parts)} FROM {source}").fetchone()
        for i, col_info in enumerate(schema):
            col_info["missing_pct"] = round(float(row[2 * i] or 0.0), 4)
            col_info["unique_count"] = int(row[2 * i + 1] or 0)

    rows_df = con.execute(f"SELECT * FROM {view} LIMIT {int(sample_limit)}").fetchdf()
    sample_rows = json_records(rows_df)

    return {
        "n_rows": n_rows,
        "n_cols": len(schema),
        "schema": schema,
        "sample_rows": sample_rows,
    }


def json_records(df: pd.DataFrame) -> List[Dict[str, Any]]:
    """DataFrame rows as JSON-safe dicts (NaN/NaT -> None, timestamps -> ISO)."""
    clean = df.astype(object).where(pd.notna(df), None)
    records = clean.to_dict(orient="records")
    for rec in records:
        for k, v in rec.items():
            if isinstance(v, (pd.Timestamp, np.datetime64)):
                rec[k] = pd.Timestamp(v).isoformat()
            elif isinstance(v, np.generic):
                rec[k] = v.item()
    return records
