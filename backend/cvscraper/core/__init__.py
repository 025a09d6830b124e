"""Core scraper modules."""
