"""
Database connections

MongoDB holds users and the product catalog; orders go to a relational
database through SQLAlchemy. Neither client connects until first use.
"""

import os
import logging
from contextlib import contextmanager
from typing import Any, Dict

from bson import ObjectId
from pymongo import MongoClient
from pymongo.errors import ConnectionFailure, PyMongoError
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from errors import PersistenceError, ServiceUnavailableError

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL", "mongodb://localhost:27017")
DATABASE_NAME = os.getenv("DATABASE_NAME", "ecom")
MONGO_TIMEOUT_MS = int(os.getenv("MONGO_TIMEOUT_MS", "5000"))
ORDERS_DATABASE_URL = os.getenv("ORDERS_DATABASE_URL", "sqlite:///./orders.db")

client = MongoClient(
    DATABASE_URL,
    serverSelectionTimeoutMS=MONGO_TIMEOUT_MS,
    connectTimeoutMS=MONGO_TIMEOUT_MS,
    socketTimeoutMS=MONGO_TIMEOUT_MS,
)
db = client[DATABASE_NAME]

_connect_args = {"check_same_thread": False} if ORDERS_DATABASE_URL.startswith("sqlite") else {}
engine = create_engine(ORDERS_DATABASE_URL, connect_args=_connect_args, pool_pre_ping=True)
SessionLocal = sessionmaker(bind=engine, expire_on_commit=False)

Base = declarative_base()


def get_db():
    return db


def get_session_factory():
    return SessionLocal


def init_orders_schema(bind=None):
    # Tables are registered on Base when orders.py is imported
    import orders  # noqa: F401
    Base.metadata.create_all(bind=bind or engine)


@contextmanager
def mongo_errors(action: str):
    """Translate pymongo failures raised inside the block into shop errors."""
    try:
        yield
    except ConnectionFailure as e:
        logger.exception("MongoDB unreachable while trying to %s", action)
        raise ServiceUnavailableError("Database unavailable") from e
    except PyMongoError as e:
        logger.exception("MongoDB error while trying to %s", action)
        raise PersistenceError(f"Failed to {action}") from e


def serialize_doc(doc: Dict[str, Any]) -> Dict[str, Any]:
    if not doc:
        return doc
    doc = dict(doc)
    _id = doc.pop("_id", None)
    if _id is not None:
        doc["id"] = str(_id)
    for k, v in list(doc.items()):
        if isinstance(v, ObjectId):
            doc[k] = str(v)
    return doc
