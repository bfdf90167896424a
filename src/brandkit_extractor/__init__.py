"""Brand kit extraction service: screenshot a site, ask a vision model for its brand, edit the result."""

__version__ = "1.0.0"
