"""coinlens: technical indicators for cryptocurrency market dashboards."""

__version__ = "0.1.0"
