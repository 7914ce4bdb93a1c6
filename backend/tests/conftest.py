"""
NoteTree Backend — Test Configuration (conftest.py)
===================================================

What:  Shared pytest fixtures for the whole suite.
How:   The environment is pointed at a throwaway SQLite file BEFORE any
       notetree module is imported, so the engine and settings pick it up.

Fixture Hierarchy (all function-scoped):
    ├── sample_forest: a small three-level forest as plain dicts
    ├── store: NoteTreeStore loaded with sample_forest
    ├── db_session: AsyncSession on a freshly created schema
    └── test_client: HTTPX AsyncClient talking to the app over ASGI
"""

import os
import tempfile

# ══════════════════════════════════════════════════════════════════════════
# Environment Setup
# ══════════════════════════════════════════════════════════════════════════

_TEST_DB_DIR = tempfile.mkdtemp(prefix="notetree_test_")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TEST_DB_DIR}/test.db"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["SAVE_BATCH_SIZE"] = "3"  # exercise multi-batch inserts with small forests

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from notetree.database import async_session_factory, create_schema, dispose_engine, drop_schema  # noqa: E402
from notetree.services.note_service import note_service  # noqa: E402
from notetree.services.tree_store import NoteTreeStore  # noqa: E402


def make_note(note_id, content=None, position=0, children=None, **fields):
    """Plain-dict note in the import/export wire shape."""
    note = {
        "id": note_id,
        "content": content if content is not None else note_id.upper(),
        "position": position,
        "is_discussion": False,
        "time_set": None,
        "youtube_url": None,
        "url": None,
        "url_display_text": None,
        "children": children or [],
    }
    note.update(fields)
    return note


# ══════════════════════════════════════════════════════════════════════════
# Tree Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def sample_forest():
    """
    Three roots, the first with a two-level subtree:

        a
        ├── a1
        │   └── a1x
        └── a2
        b
        c
    """
    return [
        make_note(
            "a",
            position=0,
            children=[
                make_note("a1", position=0, children=[make_note("a1x", position=0)]),
                make_note("a2", position=1, time_set="10:00"),
            ],
        ),
        make_note("b", position=1, url="https://example.com", url_display_text="Example"),
        make_note("c", position=2, is_discussion=True),
    ]


@pytest.fixture
def store(sample_forest):
    return NoteTreeStore(sample_forest)


# ══════════════════════════════════════════════════════════════════════════
# Database Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def db_session():
    """
    AsyncSession on an empty schema; tables are dropped afterwards.

    Tests only flush; nothing is committed.
    """
    await create_schema()
    async with async_session_factory() as session:
        yield session
        await session.rollback()
    await drop_schema()
    await dispose_engine()


@pytest_asyncio.fixture
async def test_client():
    """
    HTTPX AsyncClient wired to the app over ASGITransport.

    Usage:
        async def test_health(test_client):
            response = await test_client.get("/health")
            assert response.status_code == 200
    """
    from notetree.main import app

    await create_schema()
    note_service.clear()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    note_service.clear()
    await drop_schema()
    await dispose_engine()
