"""Cropland drought monitoring with the Vegetation Condition Index."""

__version__ = "0.1.0"
