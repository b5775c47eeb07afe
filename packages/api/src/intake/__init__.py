# This project was developed with assistance from AI tools.
"""Rental application intake API."""

__version__ = "0.1.0"
