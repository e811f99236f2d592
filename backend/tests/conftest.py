"""
Shared fixtures: an in-memory stand-in for the pymongo client.

Covers the slice of the collection/session API the services use
(find_one/find with sort+limit, insert_one, replace_one, update_one,
update_many, start_session/with_transaction) and the filter operators they
send ($in, $or, $lt/$lte/$gt/$gte, $ne, dotted paths into arrays).
Transactions snapshot every collection and restore it if the callback raises.
"""

import copy
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from bson import ObjectId
from pymongo.errors import DuplicateKeyError

from db.database import Database


# ============================================================================
# QUERY MATCHING
# ============================================================================

def _path_values(doc, path):
    current = [doc]
    for part in path.split("."):
        found = []
        for value in current:
            if isinstance(value, list):
                found.extend(item[part] for item in value if isinstance(item, dict) and part in item)
            elif isinstance(value, dict) and part in value:
                found.append(value[part])
        current = found

    values = []
    for value in current:
        values.append(value)
        if isinstance(value, list):
            values.extend(value)
    return values


_COMPARATORS = {
    "$lt": lambda a, b: a < b,
    "$lte": lambda a, b: a <= b,
    "$gt": lambda a, b: a > b,
    "$gte": lambda a, b: a >= b,
}


def _condition_matches(values, condition):
    if isinstance(condition, dict) and condition and all(key.startswith("$") for key in condition):
        for op, arg in condition.items():
            if op == "$in":
                ok = any(value in arg for value in values)
            elif op == "$ne":
                ok = all(value != arg for value in values)
            elif op == "$exists":
                ok = bool(values) == bool(arg)
            elif op in _COMPARATORS:
                ok = any(
                    value is not None and not isinstance(value, list) and _COMPARATORS[op](value, arg)
                    for value in values
                )
            else:
                raise NotImplementedError(op)
            if not ok:
                return False
        return True
    return any(value == condition for value in values)


def matches(doc, query):
    for key, condition in (query or {}).items():
        if key == "$or":
            if not any(matches(doc, sub) for sub in condition):
                return False
        elif key == "$and":
            if not all(matches(doc, sub) for sub in condition):
                return False
        elif not _condition_matches(_path_values(doc, key), condition):
            return False
    return True


def _sorted(docs, key, direction):
    present = [doc for doc in docs if _path_values(doc, key)]
    missing = [doc for doc in docs if not _path_values(doc, key)]
    present.sort(key=lambda doc: _path_values(doc, key)[0], reverse=direction == -1)
    return missing + present if direction == 1 else present + missing


def _apply_set(doc, values):
    for path, value in values.items():
        target = doc
        parts = path.split(".")
        for part in parts[:-1]:
            target = target.setdefault(part, {})
        target[parts[-1]] = copy.deepcopy(value)


# ============================================================================
# FAKE CLIENT
# ============================================================================

class FakeCursor:
    def __init__(self, docs):
        self._docs = docs

    def sort(self, key, direction=1):
        self._docs = _sorted(self._docs, key, direction)
        return self

    def limit(self, count):
        if count:
            self._docs = self._docs[:count]
        return self

    def __iter__(self):
        return iter(self._docs)


class FakeCollection:
    def __init__(self, name):
        self.name = name
        self.docs = []

    def _matching(self, query):
        return [doc for doc in self.docs if matches(doc, query)]

    def find_one(self, query=None, session=None, sort=None, **kwargs):
        docs = self._matching(query)
        for key, direction in reversed(sort or []):
            docs = _sorted(docs, key, direction)
        return copy.deepcopy(docs[0]) if docs else None

    def find(self, query=None, session=None, **kwargs):
        return FakeCursor([copy.deepcopy(doc) for doc in self._matching(query)])

    def count_documents(self, query, session=None):
        return len(self._matching(query))

    def insert_one(self, doc, session=None):
        doc.setdefault("_id", ObjectId())
        if any(existing["_id"] == doc["_id"] for existing in self.docs):
            raise DuplicateKeyError(f"duplicate _id {doc['_id']}")
        self.docs.append(copy.deepcopy(doc))
        return SimpleNamespace(inserted_id=doc["_id"])

    def replace_one(self, query, replacement, session=None, upsert=False):
        for index, doc in enumerate(self.docs):
            if matches(doc, query):
                stored = copy.deepcopy(replacement)
                stored["_id"] = doc["_id"]
                self.docs[index] = stored
                return SimpleNamespace(matched_count=1, modified_count=1)
        if upsert:
            self.insert_one(copy.deepcopy(replacement))
        return SimpleNamespace(matched_count=0, modified_count=0)

    def update_one(self, query, update, session=None, upsert=False):
        for doc in self.docs:
            if matches(doc, query):
                _apply_set(doc, update.get("$set", {}))
                return SimpleNamespace(matched_count=1, modified_count=1, upserted_id=None)
        if upsert:
            doc = {key: value for key, value in query.items() if not key.startswith("$")}
            _apply_set(doc, update.get("$setOnInsert", {}))
            _apply_set(doc, update.get("$set", {}))
            result = self.insert_one(doc)
            return SimpleNamespace(matched_count=0, modified_count=0, upserted_id=result.inserted_id)
        return SimpleNamespace(matched_count=0, modified_count=0, upserted_id=None)

    def update_many(self, query, update, session=None):
        count = 0
        for doc in self.docs:
            if matches(doc, query):
                _apply_set(doc, update.get("$set", {}))
                count += 1
        return SimpleNamespace(matched_count=count, modified_count=count)


class FakeDatabase:
    def __init__(self, name):
        self.name = name
        self.collections = {}

    def __getitem__(self, name):
        if name not in self.collections:
            self.collections[name] = FakeCollection(name)
        return self.collections[name]

    def __getattr__(self, name):
        if name.startswith("_"):
            raise AttributeError(name)
        return self[name]

    def command(self, name):
        return {"ok": 1}


class FakeSession:
    def __init__(self, client):
        self.client = client

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        return False

    def with_transaction(self, callback):
        self.client.transactions_started += 1
        snapshot = self.client.snapshot()
        try:
            result = callback(self)
        except Exception:
            self.client.restore(snapshot)
            self.client.transactions_aborted += 1
            raise
        self.client.transactions_committed += 1
        return result


class FakeMongoClient:
    def __init__(self):
        self.databases = {}
        self.transactions_started = 0
        self.transactions_committed = 0
        self.transactions_aborted = 0

    def __getitem__(self, name):
        if name not in self.databases:
            self.databases[name] = FakeDatabase(name)
        return self.databases[name]

    def start_session(self):
        return FakeSession(self)

    def snapshot(self):
        return {
            (db_name, coll_name): copy.deepcopy(collection.docs)
            for db_name, database in self.databases.items()
            for coll_name, collection in database.collections.items()
        }

    def restore(self, snapshot):
        for db_name, database in self.databases.items():
            for coll_name, collection in database.collections.items():
                collection.docs = copy.deepcopy(snapshot.get((db_name, coll_name), []))


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def mongo_client():
    return FakeMongoClient()


@pytest.fixture
def database(mongo_client):
    return Database(mongo_client=mongo_client, db_name="toolsaustralia_test")


@pytest.fixture
def now():
    return datetime(2025, 10, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def make_user(database, now):
    """Insert a user document; keyword overrides are merged over sane defaults."""
    def _make(**overrides):
        user = {
            "_id": ObjectId(),
            "firstName": "Jamie",
            "lastName": "Nguyen",
            "email": f"jamie.{ObjectId()}@example.com",
            "mobile": "0412345678",
            "state": "NSW",
            "role": "user",
            "isActive": True,
            "isEmailVerified": False,
            "isMobileVerified": False,
            "profileSetupCompleted": False,
            "rewardsPoints": 0,
            "accumulatedEntries": 0,
            "entryWallet": 0,
            "oneTimePackages": [],
            "miniDrawPackages": [],
            "miniDrawParticipation": [],
            "partnerDiscountQueue": [],
            "createdAt": now - timedelta(days=100),
            "updatedAt": now - timedelta(days=1),
        }
        user.update(overrides)
        database.users.insert_one(user)
        return user
    return _make


@pytest.fixture
def make_major_draw(database, now):
    def _make(**overrides):
        draw = {
            "_id": ObjectId(),
            "name": "Spring Ute Giveaway",
            "status": "active",
            "activationDate": now - timedelta(days=10),
            "freezeEntriesAt": now + timedelta(days=20),
            "drawDate": now + timedelta(days=21),
            "configurationLocked": False,
            "entries": [],
            "totalEntries": 0,
        }
        draw.update(overrides)
        database.majordraws.insert_one(draw)
        return draw
    return _make


@pytest.fixture
def make_mini_draw(database, now):
    def _make(**overrides):
        draw = {
            "_id": ObjectId(),
            "name": "Milwaukee Tool Kit",
            "status": "active",
            "isActive": True,
            "minimumEntries": 100,
            "entries": [],
            "totalEntries": 0,
            "createdAt": now - timedelta(days=2),
        }
        draw.update(overrides)
        database.minidraws.insert_one(draw)
        return draw
    return _make


@pytest.fixture
def feature_flags():
    """Feature flag service double; rewards enabled unless a test says otherwise."""
    flags = MagicMock()
    flags.rewards_enabled.return_value = True
    return flags
