"""
Service layer: source ingestion and catalog ETL.
"""
