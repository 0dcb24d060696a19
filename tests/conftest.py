import os
import sys

import pytest

# Ensure repository root importable early
ROOT_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

# The Flask app reads DATABASE_URL at import time
os.environ.setdefault("DATABASE_URL", "sqlite://")

from delve import create_app, db  # noqa: E402
from delve.dungeon import GenerationParameters  # noqa: E402
from delve.routes import dungeon_api  # noqa: E402


@pytest.fixture(scope="session")
def test_app():
    app = create_app()
    app.config.update({"TESTING": True})
    return app


@pytest.fixture(autouse=True)
def _push_app_context(test_app):
    ctx = test_app.app_context()
    ctx.push()
    try:
        yield
    finally:
        db.session.remove()
        ctx.pop()


@pytest.fixture()
def client(test_app):
    return test_app.test_client()


@pytest.fixture()
def clear_layout_cache():
    with dungeon_api._layout_cache_lock:
        dungeon_api._layout_cache.clear()
    yield
    with dungeon_api._layout_cache_lock:
        dungeon_api._layout_cache.clear()


@pytest.fixture()
def make_params():
    """Factory for GenerationParameters with test-friendly defaults."""

    def _make(**overrides):
        base = dict(width=50, height=50, seed=1234)
        base.update(overrides)
        return GenerationParameters(**base)

    return _make
