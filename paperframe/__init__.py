"""
Backend package for the paperframe picture frame.

This package provides a FastAPI application that keeps an ordered carousel
of photos in a key-value metadata store, the photo bytes in an object store,
and a separately scheduled rotation job that advances the displayed photo.
"""
