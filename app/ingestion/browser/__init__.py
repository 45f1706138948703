"""
Browser session pooling.
"""

from app.ingestion.browser.pool import SessionPool
from app.ingestion.browser.session import AutomationSession, ChromeSessionFactory, SessionHealth

__all__ = ["AutomationSession", "ChromeSessionFactory", "SessionHealth", "SessionPool"]
