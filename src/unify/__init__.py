"""Unification layer.

This module resolves canonical records to sampling-event aggregates and
merges them with provenance, one serialized cluster at a time.
"""
