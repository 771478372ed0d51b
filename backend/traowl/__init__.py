"""Traowl data layer: primary store gateway with flat-file fallback, and legacy data ingestion."""

__version__ = "1.0.0"
