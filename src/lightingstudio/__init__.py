"""Titanic's End Lighting Studio: landscape animation and LED fixture designer."""
__version__ = "0.1.0"
