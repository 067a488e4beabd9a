"""Battle Arena.

Text-described characters fight battles judged by an LLM oracle, with Elo
ratings kept in sorted-set ranking indexes.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
