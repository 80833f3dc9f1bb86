"""Settings surface for site notes."""
