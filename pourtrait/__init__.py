"""Pourtrait - personal wine cellar, taste profiling and recommendations."""

__version__ = "0.3.0"
