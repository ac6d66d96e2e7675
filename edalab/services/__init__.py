"""
Service layer for the HTTP API.
"""
