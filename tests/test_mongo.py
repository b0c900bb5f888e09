"""Runs against a real MongoDB server when MONGO_TEST_URL is set."""

import os
import uuid

import pytest
from pymongo import MongoClient

from database import IdAllocator, connect
from stores import DocumentStore, IdeaStore
from tests.conftest import NOW

MONGO_TEST_URL = os.getenv("MONGO_TEST_URL")

pytestmark = pytest.mark.skipif(not MONGO_TEST_URL, reason="MONGO_TEST_URL not set")


@pytest.fixture
def db_name():
    name = f"fundverse_test_{uuid.uuid4().hex[:8]}"
    yield name
    MongoClient(MONGO_TEST_URL).drop_database(name)


def open_stores(name, clock):
    db = connect(MONGO_TEST_URL, name)
    ids = IdAllocator(db)
    ideas = IdeaStore(db, ids, clock_ns=clock.ns)
    return ids, ideas, DocumentStore(db, ids, ideas)


def test_records_survive_reconnect(db_name, clock):
    ids, ideas, documents = open_stores(db_name, clock)
    idea_id = ideas.create_idea("A", "d", 100_000, "e", "c", "Technology", 1)
    doc_id = documents.upload_doc(idea_id, "plan.pdf", "application/pdf", b"\x00%PDF\xff", NOW)

    # fresh client, as after a process restart
    ids, ideas, documents = open_stores(db_name, clock)
    idea = ideas.get_idea(idea_id)
    assert idea.title == "A"
    assert idea.doc_ids == [doc_id]
    doc = documents.get_doc(doc_id)
    assert doc.data == b"\x00%PDF\xff"
    assert doc.content_type == "application/pdf"
    assert ids.current("idea") == 1
    assert ideas.create_idea("B", "d", 1, "e", "c", "Gaming", 0) == 2
