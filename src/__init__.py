"""DataSage: declarative browser automation and data extraction."""

__version__ = "1.0.0"
