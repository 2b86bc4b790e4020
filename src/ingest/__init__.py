"""Data ingestion layer.

This module extracts raw payloads from uploaded files and standardizes
them into canonical records ready for unification.
"""
