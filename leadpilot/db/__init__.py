"""
LeadPilot Database - Modular document-store data access.

- Database: shared MongoDB client manager (one per app)
- MemoryDocumentStore: in-memory store for development/testing
- Repository: base class for domain-specific data access (one per collection)
"""

from .database import Database
from .memory import MemoryDocumentStore
from .repository import Repository

__all__ = ["Database", "MemoryDocumentStore", "Repository"]
