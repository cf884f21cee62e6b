"""Export Product Hunt posts featured on a given day as CSV."""

__version__ = "0.1.0"
