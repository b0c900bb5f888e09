import copy
import logging
import threading
from typing import Any, Dict, List, Optional

from pymongo import MongoClient, ReturnDocument
from pymongo.errors import DuplicateKeyError

from config import DATABASE_NAME, DATABASE_URL, MEMORY_URL

logger = logging.getLogger(__name__)

COUNTERS = "counters"

# largest integer a BSON int64 holds
MAX_INT64 = 2 ** 63 - 1


# -------- In-memory implementation ---------
class _MemoryCollection:
    """Subset of a pymongo collection, kept in process memory.

    Supports equality filters and the $inc / $push / $set update operators.
    """

    def __init__(self):
        self.items: Dict[Any, Dict[str, Any]] = {}
        self._lock = threading.Lock()

    def _matches(self, doc: Dict[str, Any], filter_dict: Dict[str, Any]) -> bool:
        return all(doc.get(k) == v for k, v in filter_dict.items())

    def _apply(self, doc: Dict[str, Any], update: Dict[str, Any]):
        if "$inc" in update:
            for k, v in update["$inc"].items():
                doc[k] = int(doc.get(k, 0)) + int(v)
        if "$push" in update:
            for k, v in update["$push"].items():
                doc.setdefault(k, []).append(copy.deepcopy(v))
        if "$set" in update:
            for k, v in update["$set"].items():
                doc[k] = copy.deepcopy(v)

    def insert_one(self, doc: Dict[str, Any]):
        with self._lock:
            oid = doc.get("_id")
            if oid in self.items:
                raise DuplicateKeyError(f"duplicate key: {oid!r}")
            self.items[oid] = copy.deepcopy(doc)

        class Res:
            inserted_id = oid
        return Res()

    def find(self, filter_dict: Optional[Dict[str, Any]] = None):
        filter_dict = filter_dict or {}
        if "_id" in filter_dict:
            doc = self.items.get(filter_dict["_id"])
            found = [doc] if doc is not None and self._matches(doc, filter_dict) else []
        else:
            found = [d for d in self.items.values() if self._matches(d, filter_dict)]
        return [copy.deepcopy(d) for d in found]

    def find_one(self, filter_dict: Optional[Dict[str, Any]] = None):
        items = self.find(filter_dict)
        return items[0] if items else None

    def update_one(self, filter_dict: Dict[str, Any], update: Dict[str, Any]):
        class Res:
            matched_count = 0
            modified_count = 0
        res = Res()
        with self._lock:
            for doc in self.items.values():
                if self._matches(doc, filter_dict):
                    self._apply(doc, update)
                    res.matched_count = 1
                    res.modified_count = 1
                    break
        return res

    def find_one_and_update(self, filter_dict: Dict[str, Any], update: Dict[str, Any],
                            upsert: bool = False,
                            return_document: bool = ReturnDocument.BEFORE):
        with self._lock:
            target = None
            for doc in self.items.values():
                if self._matches(doc, filter_dict):
                    target = doc
                    break
            before = copy.deepcopy(target)
            if target is None:
                if not upsert:
                    return None
                target = dict(filter_dict)
                self.items[target.get("_id")] = target
            self._apply(target, update)
            return copy.deepcopy(target) if return_document == ReturnDocument.AFTER else before

    def count_documents(self, filter_dict: Dict[str, Any]) -> int:
        if not filter_dict:
            return len(self.items)
        return len(self.find(filter_dict))


class _MemoryDB:
    def __init__(self):
        self._cols: Dict[str, _MemoryCollection] = {}

    def __getitem__(self, name: str) -> _MemoryCollection:
        if name not in self._cols:
            self._cols[name] = _MemoryCollection()
        return self._cols[name]

    def __getattr__(self, name: str) -> _MemoryCollection:
        if name.startswith("_"):
            raise AttributeError(name)
        return self[name]


# -------- Initialize DB ---------

def connect(url: str = DATABASE_URL, name: str = DATABASE_NAME):
    """Open the database named by ``url``.

    ``memory://`` gives a fresh in-memory database; anything else is handed to
    MongoClient and must answer a ping, otherwise the error propagates.
    """
    if url == MEMORY_URL:
        logger.info("using in-memory database %s", name)
        return _MemoryDB()
    client = MongoClient(url, serverSelectionTimeoutMS=1500)
    # trigger server selection
    client.admin.command("ping")
    logger.info("connected to mongo database %s", name)
    return client[name]


def backing_name(db) -> str:
    return "memory" if isinstance(db, _MemoryDB) else "mongo"


# -------- Record helpers used by the stores ---------

def fits_int64(value: int) -> bool:
    return -MAX_INT64 - 1 <= value <= MAX_INT64


def _serialize(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not doc:
        return None
    result = {k: v for k, v in doc.items() if k != "_id"}
    result["id"] = doc["_id"]
    return result


def insert_record(db, collection_name: str, record_id: int, data: Dict[str, Any]) -> int:
    payload = {**data, "_id": record_id}
    payload.pop("id", None)
    res = db[collection_name].insert_one(payload)
    return res.inserted_id


def find_record(db, collection_name: str, record_id: int) -> Optional[Dict[str, Any]]:
    if not fits_int64(record_id):
        return None
    return _serialize(db[collection_name].find_one({"_id": record_id}))


def find_records(db, collection_name: str, filter_dict: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
    docs = list(db[collection_name].find(dict(filter_dict or {})))
    docs.sort(key=lambda d: d["_id"])
    return [_serialize(doc) for doc in docs]


def record_exists(db, collection_name: str, record_id: int) -> bool:
    if not fits_int64(record_id):
        return False
    return db[collection_name].count_documents({"_id": record_id}) > 0


def count_records(db, collection_name: str) -> int:
    return db[collection_name].count_documents({})


def push_value(db, collection_name: str, record_id: int, field: str, value: Any,
               updated_at: Optional[int] = None) -> int:
    update: Dict[str, Any] = {"$push": {field: value}}
    if updated_at is not None:
        update["$set"] = {"updated_at": updated_at}
    res = db[collection_name].update_one({"_id": record_id}, update)
    return getattr(res, "matched_count", 0)


# -------- Identifier allocation ---------

class IdAllocator:
    """Hands out 1, 2, 3, ... per collection from a persisted counter."""

    def __init__(self, db):
        self.db = db

    def next(self, collection_name: str) -> int:
        doc = self.db[COUNTERS].find_one_and_update(
            {"_id": collection_name},
            {"$inc": {"seq": 1}},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        return int(doc["seq"])

    def current(self, collection_name: str) -> int:
        doc = self.db[COUNTERS].find_one({"_id": collection_name})
        return int(doc["seq"]) if doc else 0
