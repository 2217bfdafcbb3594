"""
TCG catalog ETL: multi-game card ingestion into a canonical catalog.
"""
__version__ = "0.1.0"
