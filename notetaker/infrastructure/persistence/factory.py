import logging

from notetaker.config import Settings
from notetaker.domain.ports import JobRepository
from notetaker.infrastructure.persistence.in_memory_repo import InMemoryJobRepository
from notetaker.infrastructure.persistence.sqlite_repo import SqliteJobRepository

logger = logging.getLogger(__name__)


def build_repository(settings: Settings) -> JobRepository:
    if settings.persistence_backend == "sqlite":
        logger.info("Using SQLite lecture store at %s", settings.database_path)
        return SqliteJobRepository(settings.database_path)
    logger.info("Using in-memory lecture store")
    return InMemoryJobRepository()
