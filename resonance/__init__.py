"""Resonance: cross-collection visual similarity discovery."""

__version__ = "0.1.0"
