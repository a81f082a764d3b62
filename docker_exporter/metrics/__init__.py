"""Metric descriptors and exposition."""
