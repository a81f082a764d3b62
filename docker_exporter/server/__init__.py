"""HTTP server and configuration."""
