"""
Page parsers turning one HTTP response into a sequence of page entries
"""

from ingestion.pages.base import BasePage, InvalidEntry, PageEntry
from ingestion.pages.factory import create_page

__all__ = ["BasePage", "InvalidEntry", "PageEntry", "create_page"]
