"""Descriptive statistics for numeric columns."""

from typing import Any, Dict

import numpy as np
from scipy import stats


class DescriptiveStats:
    """
    Concepts covered:
    1. Mean, Median, Mode
    2. Standard Deviation, Variance, Standard Error
    3. Range, IQR, Quartiles
    4. Skewness, Kurtosis
    5. Percentiles (P10 ... P99)
    6. Confidence Interval for the mean
    """

    @staticmethod
    def full_descriptives(data: np.ndarray, confidence: float = 0.95) -> Dict[str, Any]:
        """Complete descriptive statistics for a numeric array (NaN = missing)."""
        data = np.asarray(data, dtype=float)
        clean = data[~np.isnan(data)]
        n = len(clean)

        if n == 0:
            return {"error": "No valid data points", "n": 0, "n_missing": int(np.sum(np.isnan(data)))}

        mean = float(np.mean(clean))
        std = float(np.std(clean, ddof=1)) if n > 1 else 0.0
        se = std / np.sqrt(n)

        t_crit = stats.t.ppf((1 + confidence) / 2, df=n - 1) if n > 1 else 0.0
        q1, median, q3 = (float(v) for v in np.percentile(clean, [25, 50, 75]))

        return {
            "n": n,
            "n_missing": int(np.sum(np.isnan(data))),
            "mean": mean,
            "median": median,
            "mode": float(stats.mode(clean, keepdims=True).mode[0]),
            "std": std,
            "variance": float(np.var(clean, ddof=1)) if n > 1 else 0.0,
            "se_mean": float(se),
            "min": float(np.min(clean)),
            "max": float(np.max(clean)),
            "range": float(np.ptp(clean)),
            "q1": q1,
            "q3": q3,
            "iqr": q3 - q1,
            "skewness": float(stats.skew(clean)) if n > 2 else None,
            "kurtosis": float(stats.kurtosis(clean)) if n > 3 else None,
            "ci_lower": float(mean - t_crit * se),
            "ci_upper": float(mean + t_crit * se),
            "confidence_level": confidence,
            "percentiles": {
                f"p{p}": float(v)
                for p, v in zip((10, 25, 50, 75, 90, 95, 99), np.percentile(clean, [10, 25, 50, 75, 90, 95, 99]))
            },
        }

    @staticmethod
    def mean_se(data: np.ndarray, mult: float = 1.0) -> Dict[str, float]:
        """Mean with +/- mult standard errors, the default summary of stat_summary()."""
        clean = np.asarray(data, dtype=float)
        clean = clean[~np.isnan(clean)]
        if len(clean) == 0:
            return {"y": float("nan"), "ymin": float("nan"), "ymax": float("nan")}
        mean = float(np.mean(clean))
        se = float(np.std(clean, ddof=1) / np.sqrt(len(clean))) if len(clean) > 1 else 0.0
        return {"y": mean, "ymin": mean - mult * se, "ymax": mean + mult * se}
