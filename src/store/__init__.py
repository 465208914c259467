"""Storage layer.

This module persists entries larger than one backend item as chunks
and keeps the batch import cursor between stateless invocations.
"""
