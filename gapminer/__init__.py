"""gapminer: word reconstruction, POS arbitration, text statistics and semantic gap search."""

__version__ = "0.1.0"
