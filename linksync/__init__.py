"""Open Graph enrichment for a JSON list of links."""

__version__ = "0.1.0"
