"""Seeded 3D Wave Function Collapse tile solver."""

__version__ = "0.1.0"
