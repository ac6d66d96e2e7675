"""Exploratory data analysis: datasets, dplyr-style verbs on DuckDB, and ggplot-style figures."""

__version__ = "0.1.0"
