"""price-collector: XEM/XYM price sampling, daily averages and gap recovery."""

__version__ = "0.1.0"
