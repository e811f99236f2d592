"""
MongoDB Database Connection

Uses existing MongoDB connection from db.mongo
"""
from typing import Any, Callable, TypeVar

from pymongo.client_session import ClientSession

from db.mongo import client, DB_NAME

T = TypeVar("T")


class Database:
    """MongoDB database manager - wraps existing db.mongo connection"""

    def __init__(self, mongo_client: Any = None, db_name: str = DB_NAME):
        self.client = mongo_client if mongo_client is not None else client
        self.db = self.client[db_name]

    @property
    def users(self):
        return self.db.users

    @property
    def majordraws(self):
        return self.db.majordraws

    @property
    def minidraws(self):
        return self.db.minidraws

    @property
    def paymentevents(self):
        return self.db.paymentevents

    @property
    def orders(self):
        return self.db.orders

    @property
    def referralevents(self):
        return self.db.referralevents

    @property
    def promos(self):
        return self.db.promos

    @property
    def feature_flags(self):
        return self.db.feature_flags

    def run_in_transaction(self, callback: Callable[[ClientSession], T]) -> T:
        """
        Run callback(session) inside one multi-document transaction.

        The driver commits when the callback returns and aborts on any exception,
        which is re-raised here once the session has ended.
        """
        with self.client.start_session() as session:
            return session.with_transaction(callback)

    def ping(self) -> None:
        """Ping database"""
        result = self.db.command("ping")
        if result.get("ok") != 1:
            raise RuntimeError("Database ping failed")


# Dependency for FastAPI
def get_database() -> Database:
    """Get database instance"""
    return Database()
