"""Sheetbase command line interface."""
