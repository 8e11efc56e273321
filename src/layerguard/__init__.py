"""layerguard: import-level architecture checker for layered source trees."""

__version__ = "0.4.0"
