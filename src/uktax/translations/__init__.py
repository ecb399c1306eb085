"""Packaged message catalogues consumed by the localisation helpers."""
