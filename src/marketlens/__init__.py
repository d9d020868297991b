"""marketlens: support/resistance and volume analysis for daily candles."""

__version__ = "0.1.0"
