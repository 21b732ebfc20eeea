"""page_alerter - watches web sites for new items and archives pages."""

__version__ = "0.1.0"
