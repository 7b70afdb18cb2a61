"""Three-angle profile styling: client-side compression and the generation API."""

__version__ = "1.0.0"
