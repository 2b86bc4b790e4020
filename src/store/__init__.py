"""Storage and query layer.

This module persists sampling-event aggregates and file lifecycle records.
It powers listing, filtering, and export for the SDK and CLI.
"""
