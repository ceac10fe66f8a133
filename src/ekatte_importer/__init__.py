"""Batch importer for the Bulgarian EKATTE registry of territorial units."""

__version__ = "1.0.0"
