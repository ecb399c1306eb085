"""Calculation services and their calculator modules."""
