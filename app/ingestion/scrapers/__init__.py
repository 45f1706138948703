"""
Scraper task exports.
"""

from app.ingestion.scrapers.data_bundles import DataBundleScraperTask
from app.ingestion.scrapers.school_directory import SchoolDirectoryScraperTask

__all__ = ["DataBundleScraperTask", "SchoolDirectoryScraperTask"]
