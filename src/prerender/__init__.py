"""Static prerendering of client-rendered report pages."""

__version__ = "0.1.0"
