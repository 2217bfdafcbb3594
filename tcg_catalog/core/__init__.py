"""
Core utilities: configuration, logging, hashing, SKUs and circuit breakers.
"""
