"""Content manager assistant for the PS Vita: SFO reading, settings, a SQLite media catalogue, backup management and the command line entry point."""

__version__ = "0.5.1"