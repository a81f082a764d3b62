"""Collection services: derived metrics and scrape orchestration."""
