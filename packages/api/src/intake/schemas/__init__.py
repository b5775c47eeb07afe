# This project was developed with assistance from AI tools.
"""Pydantic schemas shared by services and routes."""
