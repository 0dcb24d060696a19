"""
project: Delve
module: __init__.py
License: MIT

Flask application and core extensions setup.

This module wires together the Flask app, SQLAlchemy and the dungeon API
blueprint. Configuration is sourced from environment variables with
reasonable defaults for development. A local `instance/` directory is used
for SQLite and the server log.
"""

import logging
import os
import uuid
from pathlib import Path

from dotenv import load_dotenv
from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy

# Load .env if present so `SECRET_KEY`, `DATABASE_URL`, etc. can be supplied
# without exporting shell variables during development.
load_dotenv()

app = Flask(__name__, instance_relative_config=True)
os.makedirs(app.instance_path, exist_ok=True)

secret_key = os.getenv("SECRET_KEY", "dev-secret-change-me")
database_url = os.getenv("DATABASE_URL")
if not database_url:
    db_path = Path(app.instance_path) / "delve.db"
    # POSIX path for SQLAlchemy URI compatibility across OS
    database_url = f"sqlite:///{db_path.as_posix()}"


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() not in {"0", "false", "no", ""}


app.config.update(
    SECRET_KEY=secret_key,
    SQLALCHEMY_DATABASE_URI=database_url,
    SQLALCHEMY_TRACK_MODIFICATIONS=False,
    # Dungeon engine knobs (read by EngineSettings.from_env inside requests)
    DUNGEON_ENABLE_GENERATION_METRICS=_env_bool("DUNGEON_ENABLE_GENERATION_METRICS", "1"),
    DUNGEON_LAYOUT_CACHE_MAX=int(os.getenv("DUNGEON_LAYOUT_CACHE_MAX", "8")),
)

engine_opts = {}
if database_url.startswith("sqlite:///"):
    # busy timeout (seconds) for file-backed sqlite
    engine_opts["connect_args"] = {"timeout": 10, "check_same_thread": False}
db = SQLAlchemy(app, session_options={"expire_on_commit": False}, engine_options=engine_opts)

# Register HTTP blueprints once app/db exist
from delve.routes.dungeon_api import bp_dungeon  # noqa: E402

app.register_blueprint(bp_dungeon)


def create_app():
    """Return the Flask app instance with its tables created."""
    from delve.models import dungeon_record  # noqa: F401

    with app.app_context():
        db.create_all()
    return app


@app.errorhandler(500)
def internal_error(e):
    error_id = uuid.uuid4().hex[:8]
    logging.exception("Unhandled exception (id=%s)", error_id)
    return jsonify({"error": "internal_error", "error_id": error_id}), 500
