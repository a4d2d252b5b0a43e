"""Persistence — MongoClient, QuoteRepository."""

from optical_quote.persistence.mongo_client import MongoClient
from optical_quote.persistence.quote_repository import QuoteRepository

__all__ = ["MongoClient", "QuoteRepository"]
