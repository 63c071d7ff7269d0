"""Specter: knowledge graph and historical analytics for source trees."""

__version__ = "1.0.0"
