"""Price aggregation and deal-intelligence engine for audio gear listings."""

__version__ = "0.1.0"
