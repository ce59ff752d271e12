from datetime import datetime, timezone
from typing import Callable

from sqlalchemy.ext.asyncio import AsyncSession

from src.utils.logger import get_logger


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class BaseService:
    """Base service class with database and clock dependency injection."""

    def __init__(self, db: AsyncSession, clock: Callable[[], datetime] = utc_now):
        self.db = db
        self.clock = clock
        self.logger = get_logger(self.__class__.__name__)

    def now(self) -> datetime:
        return self.clock()
