"""Controller for the Dream Cheeky USB missile launcher."""

__version__ = "0.1.0"
