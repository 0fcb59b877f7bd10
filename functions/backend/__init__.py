"""
Backend package for the family admin console.

This package provides a FastAPI application over document store, blob
storage and identity abstractions, with Firebase, SQL/S3-compatible and
in-memory implementations of each.
"""
