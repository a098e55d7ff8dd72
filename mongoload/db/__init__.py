"""Database client capability and its MongoDB implementation."""

from mongoload.db.client import DatabaseClient, Document, Pipeline
from mongoload.db.mongo import MongoDatabaseClient

__all__ = ["DatabaseClient", "Document", "Pipeline", "MongoDatabaseClient"]
