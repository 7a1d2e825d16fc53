"""Form collector service: gap-filling submission storage and a table browser."""

__version__ = "1.0.0"
