"""
Test package for the Docker exporter.
"""
