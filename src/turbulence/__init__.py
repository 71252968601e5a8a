"""Correlation-structure shock indicator and green-bar composite signal."""
