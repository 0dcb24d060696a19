"""
project: Delve
module: dungeon_api.py
License: MIT

Dungeon generation API routes.

POST /api/dungeon/generate validates a parameter mapping, runs the engine and
stores the serialized layout; GET /api/dungeon/<id> returns a stored layout;
GET /api/dungeon/catalogs lists the registered tile catalogs.
"""

import os
import threading

from flask import Blueprint, current_app, jsonify, request

from delve import db
from delve.dungeon import (
    EngineSettings,
    GenerationExhausted,
    GenerationParameters,
    InvalidParameters,
    catalog_ids,
    generate_dungeon,
    get_catalog,
    register_inline_catalog,
)
from delve.logging_utils import get_logger
from delve.models.dungeon_record import DungeonLayoutRecord

log = get_logger("delve.routes.dungeon_api")

bp_dungeon = Blueprint("dungeon", __name__)

# Simple in-process cache params -> DungeonLayout. Layouts are immutable so
# sharing them across requests is safe; the lock guards the dict itself.
_layout_cache = {}
_layout_cache_lock = threading.Lock()


def get_cached_layout(params: GenerationParameters):
    settings = EngineSettings.from_env()
    if os.environ.get("DUNGEON_DISABLE_CACHE") == "1":
        return generate_dungeon(params, settings)
    with _layout_cache_lock:
        layout = _layout_cache.get(params)
        if layout is not None:
            return layout
    layout = generate_dungeon(params, settings)
    cache_max = int(current_app.config.get("DUNGEON_LAYOUT_CACHE_MAX", 8))
    with _layout_cache_lock:
        _layout_cache[params] = layout
        if len(_layout_cache) > cache_max:
            first_key = next(iter(_layout_cache.keys()))
            if first_key != params:
                _layout_cache.pop(first_key, None)
    return layout


def _error(status: int, error: str, message: str):
    return jsonify({"error": error, "message": message}), status


@bp_dungeon.route("/api/dungeon/generate", methods=["POST"])
def generate():
    """Generate and store a dungeon layout.

    Body JSON: any GenerationParameters field (or its alias). ``seed`` may be
    an int, a numeric string, any other string (hashed) or null (random).
    ``catalog`` may name a registered tile catalog or hold an inline one.

    Response: 201 { "id", "seed", "layout" }; 400 on invalid parameters;
    422 when generation is exhausted.
    """
    data = request.get_json(silent=True)
    if data is None:
        data = {}
    if not isinstance(data, dict):
        return _error(400, "invalid_parameters", "request body must be a JSON object")
    data = dict(data)
    try:
        for key in ("catalog", "tile_catalog"):
            if isinstance(data.get(key), dict):
                data[key] = register_inline_catalog(data[key]).id
        params = GenerationParameters.from_mapping(data)
        layout = get_cached_layout(params)
    except InvalidParameters as exc:
        return _error(400, "invalid_parameters", str(exc))
    except GenerationExhausted as exc:
        log.warn(event="generation_exhausted", seed=exc.params.seed, attempts=exc.attempts, level_index=exc.level_index)
        return jsonify(exc.to_dict()), 422
    doc = layout.to_dict()
    record = DungeonLayoutRecord(seed=params.seed, params=params.to_dict(), layout=doc)
    db.session.add(record)
    db.session.commit()
    log.info(event="layout_stored", id=record.id, seed=params.seed, levels=params.levels)
    return jsonify({"id": record.id, "seed": params.seed, "layout": doc}), 201


@bp_dungeon.route("/api/dungeon/catalogs")
def catalogs():
    out = []
    for cid in catalog_ids():
        cat = get_catalog(cid)
        out.append({"id": cat.id, "tile_size": cat.tile_size, "tiles": len(cat.tiles)})
    return jsonify({"catalogs": out})


@bp_dungeon.route("/api/dungeon/<layout_id>")
def get_layout(layout_id):
    record = db.session.get(DungeonLayoutRecord, layout_id)
    if record is None:
        return _error(404, "not_found", f"no layout {layout_id}")
    return jsonify(record.to_dict())
