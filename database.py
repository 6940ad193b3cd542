"""
MongoDB access for the pokemon collection.

The store is the read-through cache: documents are inserted the first time a
Pokémon is resolved and updated once more when its evolution chain arrives.
"""

import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple, Union

from pymongo import ASCENDING, TEXT, MongoClient
from pymongo.collection import Collection
from pymongo.errors import DuplicateKeyError

from settings import COLLECTION_NAME, DATABASE_NAME, MONGODB_URI

logger = logging.getLogger("pokedex.db")

# Fields returned by list and search views
SUMMARY_PROJECTION = {"_id": False, "id": True, "name": True, "sprites": True, "types": True}
FULL_PROJECTION = {"_id": False}


def connect(uri: str = MONGODB_URI) -> MongoClient:
    client = MongoClient(uri)
    logger.info("Created MongoDB client", extra={"database": get_database(client).name})
    return client


def get_database(client: MongoClient):
    if DATABASE_NAME:
        return client[DATABASE_NAME]
    return client.get_default_database("pokedex")


def get_collection(client: MongoClient) -> Collection:
    return get_database(client)[COLLECTION_NAME]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PokemonStore:
    """Thin wrapper over the pokemon collection with the queries the API needs."""

    def __init__(self, collection: Collection):
        self.col = collection

    def ensure_indexes(self):
        self.col.create_index([("id", ASCENDING)], unique=True, name="id_unique")
        self.col.create_index([("name", ASCENDING)], unique=True, name="name_unique")
        self.col.create_index([("name", TEXT)], name="name_text")

    @staticmethod
    def _search_filter(search: Optional[str]) -> Dict[str, Any]:
        if not search:
            return {}
        return {"name": {"$regex": re.escape(search), "$options": "i"}}

    @staticmethod
    def _identifier_filter(identifier: Union[int, str]) -> Dict[str, Any]:
        if isinstance(identifier, int):
            return {"id": identifier}
        return {"name": identifier.lower()}

    def count(self, search: Optional[str] = None) -> int:
        return self.col.count_documents(self._search_filter(search))

    def find_many(self, search: Optional[str] = None, skip: int = 0, limit: int = 0) -> List[Dict[str, Any]]:
        cursor = (
            self.col.find(self._search_filter(search), SUMMARY_PROJECTION)
            .sort("id", ASCENDING)
            .skip(skip)
            .limit(limit)
        )
        return list(cursor)

    def find_all(self) -> List[Dict[str, Any]]:
        return list(self.col.find({}, FULL_PROJECTION).sort("id", ASCENDING))

    def find_one(self, identifier: Union[int, str]) -> Optional[Dict[str, Any]]:
        return self.col.find_one(self._identifier_filter(identifier), FULL_PROJECTION)

    def exists(self, name: str) -> bool:
        return self.col.count_documents({"name": name.lower()}, limit=1) > 0

    def upsert(self, query: Dict[str, Any], fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Set ``fields`` on the document matching ``query`` and return it re-read."""
        update = dict(fields)
        update["updatedAt"] = _utcnow()
        self.col.update_one(query, {"$set": update})
        return self.col.find_one(query, FULL_PROJECTION)

    def insert(self, record: Dict[str, Any]) -> Dict[str, Any]:
        """
        Insert a new record.

        Raises:
            DuplicateKeyError: If a document with the same id or name exists.
        """
        now = _utcnow()
        document = dict(record, createdAt=now, updatedAt=now)
        self.col.insert_one(document)
        document.pop("_id", None)
        return document

    def insert_if_absent(self, record: Dict[str, Any]) -> Tuple[Dict[str, Any], bool]:
        """
        Atomically insert ``record`` unless a document with its name exists.

        Returns the stored document and whether this call inserted it. A
        concurrent insert of the same name counts as already present.

        Raises:
            DuplicateKeyError: If the id belongs to a document with another name.
        """
        now = _utcnow()
        document = dict(record, createdAt=now, updatedAt=now)
        query = {"name": record["name"]}
        try:
            result = self.col.update_one(query, {"$setOnInsert": document}, upsert=True)
            inserted = result.upserted_id is not None
        except DuplicateKeyError:
            inserted = False
            logger.debug("Concurrent insert detected", extra={"pokemon": record["name"]})

        stored = self.col.find_one(query, FULL_PROJECTION)
        if stored is None:
            raise DuplicateKeyError(f"id {record['id']} is already stored under another name")
        return stored, inserted
