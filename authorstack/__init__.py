"""
AuthorStack Sales Service

Sales tracking backend for indie authors: sales ingestion, daily aggregation,
caching, book catalogue and AI insights.
"""

__version__ = "1.0.0"
