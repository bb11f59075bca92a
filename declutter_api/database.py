from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Optional

from bson import ObjectId
from bson.errors import InvalidId
from fastapi import Request
from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.database import Database
from pymongo.errors import PyMongoError

from declutter_api.exceptions import PersistenceError
from declutter_api.logging import get_logger

logger = get_logger("declutter.database")


def connect(uri: str) -> MongoClient:
    """Open the process-wide client. pymongo pools connections internally."""
    return MongoClient(uri, tz_aware=True)


def ensure_indexes(db: Database) -> None:
    db["user"].create_index([("email", ASCENDING)], unique=True)
    db["post"].create_index([("email", ASCENDING), ("created_at", DESCENDING)])
    db["comment"].create_index([("post_id", ASCENDING), ("created_at", ASCENDING)])
    db["notification"].create_index([("to_email", ASCENDING), ("created_at", DESCENDING)])


def ensure_indexes_ready(state: Any) -> bool:
    """
    Create the indexes once per process. A failure is logged and retried on
    the next request, so the unique email index appears once the store is back.
    """
    if getattr(state, "indexes_ready", False):
        return True
    try:
        ensure_indexes(state.db)
    except PyMongoError as exc:
        logger.warning("Index setup pending", error=str(exc))
        return False
    state.indexes_ready = True
    return True


def get_db(request: Request) -> Database:
    state = request.app.state
    if getattr(state, "db", None) is None:
        raise PersistenceError("Database unavailable")
    ensure_indexes_ready(state)
    return state.db


def utcnow() -> datetime:
    # BSON dates hold milliseconds; truncating here keeps responses equal to later reads
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=now.microsecond // 1000 * 1000)


def parse_object_id(value: Any) -> Optional[ObjectId]:
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return None


def to_public(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Make a stored document JSON-friendly: string ids, no password hash."""
    if not doc:
        return doc
    d = {**doc}
    _id = d.pop("_id", None)
    if _id is not None:
        d["id"] = str(_id)
    d.pop("password_hash", None)
    for key, value in d.items():
        if isinstance(value, ObjectId):
            d[key] = str(value)
        elif isinstance(value, datetime) and value.tzinfo is None:
            # stored dates are UTC; a naive read must not pass for local time
            d[key] = value.replace(tzinfo=timezone.utc)
    return d


def create_document(db: Database, collection_name: str, data: BaseModel) -> Dict[str, Any]:
    payload = data.model_dump()
    result = db[collection_name].insert_one(payload)
    payload["_id"] = result.inserted_id
    return payload


def get_documents(
    db: Database,
    collection_name: str,
    filter_dict: Dict[str, Any],
    direction: int = DESCENDING,
) -> List[Dict[str, Any]]:
    # _id breaks ties between documents written in the same millisecond
    cursor = db[collection_name].find(filter_dict).sort(
        [("created_at", direction), ("_id", direction)]
    )
    return list(cursor)


@contextmanager
def store_errors(message: str, **fields: Any) -> Iterator[None]:
    """Re-raise driver failures as a PersistenceError carrying ``message``."""
    try:
        yield
    except PyMongoError as exc:
        logger.error(message, error=str(exc), error_type=type(exc).__name__, **fields)
        raise PersistenceError(message) from exc
