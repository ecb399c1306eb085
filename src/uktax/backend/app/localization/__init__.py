"""Shared translation helpers bridging backend services and static catalogues."""

from .catalog import Translator, get_translator, normalise_locale

__all__ = ["Translator", "get_translator", "normalise_locale"]
