"""VFR chart and NASR data engine."""

__version__ = "0.1.0"
