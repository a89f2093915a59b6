"""Persistence layer for mysociety application."""

from mysociety.database.base import Store
from mysociety.database.factories import create_workbook_store

__all__ = ["Store", "create_workbook_store"]
