"""Tile prototypes, the cell grid and the generators that fill it."""
