"""pipeboom — mirror the playing Apple Music track into Discord presence."""

__version__ = "0.1.0"
