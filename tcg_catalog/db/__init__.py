"""
Database module containing the declarative base and transaction helpers.
"""
from tcg_catalog.db.base import Base
from tcg_catalog.db.transaction import atomic

__all__ = ["Base", "atomic"]
