"""
Backend package for the feeding log API.

This package provides a FastAPI application over a key-value store
abstraction so the same handlers run against an in-memory map in tests
and Redis in production.
"""
