"""PTO row import pipeline.

This module validates and stages tabular PTO rows and commits them
into request and schedule collections in resumable batches.
"""
