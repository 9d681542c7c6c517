"""Grand-prix team management simulation."""

__version__ = "0.1.0"
