"""
Portal ingestion: session pool, extraction chain, scraper tasks and run coordination.
"""
