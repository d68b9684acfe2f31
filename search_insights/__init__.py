"""Search Insights Hub - SEO and AI-visibility client reporting."""

__version__ = "1.0.0"
