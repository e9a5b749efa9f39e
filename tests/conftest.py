import copy
import itertools
import json

import pytest
from firebase_admin import auth as firebase_auth
from google.cloud.firestore_v1.transforms import Increment

from wellness import firebase, llm_client

TOKENS = {
    "alice-token": "alice",
    "bob-token": "bob",
}

_ids = itertools.count(1)


# ------------------ In-memory Firestore ------------------

class FakeSnapshot:
    def __init__(self, reference, data):
        self.reference = reference
        self.id = reference.id
        self._data = data

    @property
    def exists(self):
        return self._data is not None

    def to_dict(self):
        return copy.deepcopy(self._data)


class FakeDocumentReference:
    def __init__(self, collection, doc_id):
        self.collection = collection
        self.id = doc_id

    def set(self, data):
        self.collection.docs[self.id] = copy.deepcopy(data)

    def update(self, data):
        if self.id not in self.collection.docs:
            raise ValueError(f"No document to update: {self.id}")
        doc = self.collection.docs[self.id]
        for key, value in data.items():
            if isinstance(value, Increment):
                doc[key] = doc.get(key, 0) + value.value
            else:
                doc[key] = value

    def get(self):
        return FakeSnapshot(self, self.collection.docs.get(self.id))

    def delete(self):
        self.collection.docs.pop(self.id, None)


class FakeQuery:
    def __init__(self, collection, filters=(), orders=(), limit=None):
        self.collection = collection
        self.filters = tuple(filters)
        self.orders = tuple(orders)
        self._limit = limit

    def where(self, filter=None):
        assert filter.op_string == "==", "only equality filters are used"
        return FakeQuery(self.collection, self.filters + ((filter.field_path, filter.value),),
                         self.orders, self._limit)

    def order_by(self, field_path, direction="ASCENDING"):
        return FakeQuery(self.collection, self.filters, self.orders + ((field_path, direction),), self._limit)

    def limit(self, count):
        return FakeQuery(self.collection, self.filters, self.orders, count)

    def stream(self):
        rows = [
            (doc_id, doc) for doc_id, doc in self.collection.docs.items()
            if all(doc.get(field) == value for field, value in self.filters)
        ]
        for field_path, direction in reversed(self.orders):
            rows.sort(key=lambda row: row[1][field_path], reverse=direction == "DESCENDING")
        if self._limit is not None:
            rows = rows[:self._limit]
        for doc_id, doc in rows:
            yield FakeSnapshot(FakeDocumentReference(self.collection, doc_id), doc)


class FakeCollection(FakeQuery):
    def __init__(self, name):
        self.name = name
        self.docs = {}
        super().__init__(self)

    def document(self, doc_id=None):
        return FakeDocumentReference(self, doc_id or f"{self.name}-{next(_ids)}")


class FakeBatch:
    def __init__(self, db):
        self.db = db
        self.ops = []

    def set(self, ref, data):
        self.ops.append(("set", ref, data))

    def update(self, ref, data):
        self.ops.append(("update", ref, data))

    def commit(self):
        if self.db.fail_commit:
            raise self.db.fail_commit
        for op, ref, data in self.ops:
            getattr(ref, op)(data)
        self.db.commits += 1


class FakeFirestore:
    def __init__(self):
        self.collections = {}
        self.commits = 0
        self.fail_commit = None

    def collection(self, name):
        return self.collections.setdefault(name, FakeCollection(name))

    def batch(self):
        return FakeBatch(self)

    def docs(self, name):
        return self.collection(name).docs


# ------------------ Fake model provider ------------------

class FakeProvider:
    name = "fake"

    def __init__(self, raw='{"mood": "calm", "reply": "I am here for you."}'):
        self.raw = raw
        self.prompts = []
        self.error = None

    def complete(self, history_text, message):
        self.prompts.append(llm_client.build_prompt(history_text, message))
        if self.error:
            raise self.error
        return self.raw


# ------------------ Fixtures ------------------

@pytest.fixture
def fake_db(monkeypatch):
    db = FakeFirestore()
    monkeypatch.setattr(firebase, "get_db", lambda: db)
    return db


@pytest.fixture
def verify_token(monkeypatch):
    def _verify(token):
        if token == "expired-token":
            raise firebase_auth.ExpiredIdTokenError("Token expired", None)
        if token not in TOKENS:
            raise firebase_auth.InvalidIdTokenError("Could not verify token")
        return {"uid": TOKENS[token]}

    monkeypatch.setattr(firebase, "verify_token", _verify)
    return _verify


@pytest.fixture
def provider(monkeypatch):
    fake = FakeProvider()
    monkeypatch.setattr(llm_client, "get_provider", lambda: fake)
    return fake


@pytest.fixture
def api(client, fake_db, verify_token):
    """Django test client bound to a bearer token, speaking JSON."""

    class Api:
        def __init__(self, token="alice-token"):
            self.token = token

        def _headers(self):
            return {"HTTP_AUTHORIZATION": f"Bearer {self.token}"} if self.token else {}

        def get(self, path, params=None):
            return client.get(path, params or {}, **self._headers())

        def post(self, path, payload=None, raw=None):
            body = raw if raw is not None else json.dumps(payload or {})
            return client.post(path, body, content_type="application/json", **self._headers())

        def delete(self, path):
            return client.delete(path, **self._headers())

        def as_user(self, token):
            return Api(token)

    return Api()
