"""Predict satellite passes over a ground station and schedule one recording per selected pass."""

__version__ = "1.0.0"
