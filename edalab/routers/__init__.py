"""
API routers: datasets, queries, pipeline capabilities and plots.
"""
