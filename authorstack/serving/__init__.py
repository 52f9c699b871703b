"""
Serving Layer - cache, rate limiting and the REST API
"""
