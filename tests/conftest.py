"""
Shared fixtures: an in-memory stand-in for the handful of Motor collection
calls the storefront makes, patched in place of ``database.get_db``.
"""

import copy
from datetime import datetime, timedelta
from types import SimpleNamespace
from typing import Any, Callable, Dict, List, Optional

import pytest
from bson import ObjectId
from pymongo.errors import ServerSelectionTimeoutError

import database

_MISSING = object()


def _matches(doc: Dict[str, Any], filter_dict: Dict[str, Any]) -> bool:
    for key, expected in filter_dict.items():
        actual = doc.get(key, _MISSING)
        if expected is None:
            if actual is not _MISSING and actual is not None:
                return False
        elif isinstance(actual, list) and not isinstance(expected, list):
            if expected not in actual:
                return False
        elif actual != expected:
            return False
    return True


def _sort_key(field: str) -> Callable[[Dict[str, Any]], Any]:
    def key(doc):
        value = doc.get(field)
        return (-1, None) if value is None else (0, value)
    return key


class FakeCursor:
    def __init__(self, docs: List[Dict[str, Any]]):
        self._docs = docs

    def sort(self, spec):
        for field, direction in reversed(list(spec)):
            self._docs.sort(key=_sort_key(field), reverse=direction < 0)
        return self

    def limit(self, n: int):
        if n:
            self._docs = self._docs[:n]
        return self

    def __aiter__(self):
        self._iter = iter(self._docs)
        return self

    async def __anext__(self):
        try:
            return next(self._iter)
        except StopIteration:
            raise StopAsyncIteration


class FakeCollection:
    def __init__(self):
        self.docs: List[Dict[str, Any]] = []
        self.fail = False
        self.before_update: Optional[Callable[["FakeCollection"], None]] = None

    def _check(self):
        if self.fail:
            raise ServerSelectionTimeoutError("store unreachable")

    async def insert_one(self, doc):
        self._check()
        doc = copy.deepcopy(doc)
        doc.setdefault("_id", ObjectId())
        self.docs.append(doc)
        return SimpleNamespace(inserted_id=doc["_id"])

    async def find_one(self, filter_dict=None):
        self._check()
        for doc in self.docs:
            if _matches(doc, filter_dict or {}):
                return copy.deepcopy(doc)
        return None

    def find(self, filter_dict=None):
        self._check()
        return FakeCursor([copy.deepcopy(d) for d in self.docs if _matches(d, filter_dict or {})])

    async def update_one(self, filter_dict, update):
        self._check()
        if self.before_update is not None:
            hook, self.before_update = self.before_update, None
            hook(self)
        for doc in self.docs:
            if _matches(doc, filter_dict):
                doc.update(copy.deepcopy(update.get("$set", {})))
                return SimpleNamespace(matched_count=1, modified_count=1)
        return SimpleNamespace(matched_count=0, modified_count=0)

    async def delete_one(self, filter_dict):
        self._check()
        for i, doc in enumerate(self.docs):
            if _matches(doc, filter_dict):
                del self.docs[i]
                return SimpleNamespace(deleted_count=1)
        return SimpleNamespace(deleted_count=0)

    async def delete_many(self, filter_dict):
        self._check()
        keep = [d for d in self.docs if not _matches(d, filter_dict)]
        deleted = len(self.docs) - len(keep)
        self.docs = keep
        return SimpleNamespace(deleted_count=deleted)

    async def count_documents(self, filter_dict):
        self._check()
        return sum(1 for d in self.docs if _matches(d, filter_dict))


class FakeDB:
    def __init__(self):
        self.collections: Dict[str, FakeCollection] = {}

    def __getitem__(self, name: str) -> FakeCollection:
        return self.collections.setdefault(name, FakeCollection())

    async def list_collection_names(self):
        return list(self.collections)


@pytest.fixture(autouse=True)
def fake_db(monkeypatch):
    db = FakeDB()

    async def get_db():
        return db

    monkeypatch.setattr(database, "get_db", get_db)
    return db


@pytest.fixture
def add_product(fake_db):
    """Insert a product document directly; later calls are newer by default."""
    base = datetime(2024, 1, 1)
    counter = {"n": 0}

    def add(**fields) -> str:
        counter["n"] += 1
        doc = {
            "title": f"Book {counter['n']}",
            "price": 10.0,
            "stock": "10",
            "category": "Fiction",
            "subCategory": [],
            "brand": "Penguin",
            "sku": f"SKU-{counter['n']:03d}",
            "images": [],
            "created_at": base + timedelta(days=counter["n"]),
        }
        doc.update(fields)
        doc["_id"] = ObjectId()
        fake_db["product"].docs.append(doc)
        return str(doc["_id"])

    return add


@pytest.fixture
def add_setting(fake_db):
    def add(inside=60, outside=120, **fields) -> None:
        doc = {
            "_id": ObjectId(),
            "name": "E-Books",
            "tagline": "Read more",
            "description": "<p>Books <b>for all</b></p>",
            "favicon": "/favicon.ico",
            "deliveryCharge": {"insideDhaka": inside, "outSideDhaka": outside},
        }
        doc.update(fields)
        fake_db["setting"].docs.append(doc)

    return add
