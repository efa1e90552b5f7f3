"""
repotxt: a small Flask service that curates a subset of a repository (auto
patterns, ignore files, manual overrides, line ranges) and flattens it into a
single text report for LLM prompts.
"""

import logging
import os
from pathlib import Path

from flask import Flask, jsonify, request

from .core import FILE_EVENT_KINDS, RepoCore
from .ranges import LineRange
from .session import SessionStore
from .settings import DEFAULT_DEBOUNCE_MS, DEFAULT_STATE_FILE

logger = logging.getLogger(__name__)

app = Flask(__name__)

# -------------------------------------------------------
# Configuration / constants
# -------------------------------------------------------
PAGE_SIZE = 500


def _core_from_env() -> RepoCore:
    root = Path(os.getenv("REPOTXT_ROOT", Path.cwd())).resolve()
    state_file = Path(os.getenv("REPOTXT_STATE_FILE", DEFAULT_STATE_FILE)).expanduser()
    debounce_ms = int(os.getenv("REPOTXT_DEBOUNCE_MS", str(DEFAULT_DEBOUNCE_MS)))
    return RepoCore(
        root if root.is_dir() else None,
        store=SessionStore(state_file),
        debounce_seconds=debounce_ms / 1000,
    )


def get_core() -> RepoCore:
    core = app.config.get("REPOTXT_CORE")
    if core is None:
        core = _core_from_env()
        app.config["REPOTXT_CORE"] = core
    return core


class BadRequest(ValueError):
    pass


@app.errorhandler(ValueError)
def _bad_request(e):
    return jsonify({"error": str(e)}), 400


def _json_body() -> dict:
    data = request.get_json(force=True, silent=True) or {}
    if not isinstance(data, dict):
        raise BadRequest("request body must be a JSON object")
    return data


def _require_path(data: dict) -> str:
    path = data.get("path")
    if not isinstance(path, str) or not path:
        raise BadRequest("path must be a non-empty string")
    return path


def _parse_selections(data: dict) -> list[LineRange]:
    raw = data.get("selections")
    if not isinstance(raw, list):
        raise BadRequest("selections must be a list of {start, end}")
    return [LineRange.from_dict(r) for r in raw]


def _ranges_payload(path: str, ranges) -> dict:
    return {"path": path, "ranges": [r.to_dict() for r in ranges]}


# -------------------------------------------------------
# Flask Routes
# -------------------------------------------------------
@app.route("/api/tree")
def api_tree():
    """
    Lazy endpoint: returns immediate children of the requested folder.
    Query params:
      - path: relative or absolute folder path (defaults to the root)
      - limit: max items (default 500)
      - offset: pagination offset (default 0)
    """
    rel = request.args.get("path", "")
    limit = request.args.get("limit", PAGE_SIZE, type=int)
    offset = request.args.get("offset", 0, type=int)
    core = get_core()
    if core.root is None:
        return jsonify(core.list_children())

    base = Path(core.root, rel) if rel else Path(core.root)
    if not base.is_dir():
        return jsonify({"error": "Invalid path"}), 400

    payload = core.list_children(str(base), offset, limit)
    return jsonify(
        {
            "parent": {
                "name": base.name or core.root,
                "path": Path(os.path.relpath(base, core.root)).as_posix() if rel else "",
                "fullPath": os.path.normpath(str(base)),
            },
            **payload,
        }
    )


@app.route("/api/state")
def api_state():
    core = get_core()
    return jsonify({"root": core.root, **core.state()})


@app.route("/api/states", methods=["POST"])
def api_states():
    """
    Receives JSON: { "paths": [...] } and returns the visual verdict of each.
    """
    items = _json_body().get("paths", [])
    if not isinstance(items, list) or not all(isinstance(p, str) for p in items):
        raise BadRequest("paths must be a list of strings")
    return jsonify({"states": get_core().node_states(items)})


@app.route("/api/exclusion")
def api_exclusion():
    path = request.args.get("path", "")
    if not path:
        raise BadRequest("path is required")
    core = get_core()
    return jsonify(
        {
            "path": path,
            "effectivelyExcluded": core.effectively_excluded(path),
            "visuallyExcluded": core.visually_excluded(path),
            "partial": core.has_partial(path),
        }
    )


@app.route("/api/toggle", methods=["POST"])
def api_toggle():
    data = _json_body()
    path = _require_path(data)
    core = get_core()
    core.toggle_exclude(path)
    return jsonify({"path": path, "excluded": core.visually_excluded(path)})


@app.route("/api/toggle-multiple", methods=["POST"])
def api_toggle_multiple():
    items = _json_body().get("paths")
    if not isinstance(items, list) or not all(isinstance(p, str) for p in items):
        raise BadRequest("paths must be a list of strings")
    core = get_core()
    core.toggle_exclude_multiple(items)
    return jsonify({"states": core.node_states(items)})


@app.route("/api/reset", methods=["POST"])
def api_reset():
    core = get_core()
    core.reset_exclusions()
    return jsonify(core.state())


@app.route("/api/ranges", methods=["GET"])
def api_get_ranges():
    path = request.args.get("path", "")
    if not path:
        raise BadRequest("path is required")
    return jsonify(_ranges_payload(path, get_core().get_ranges(path)))


@app.route("/api/ranges", methods=["POST"])
def api_add_ranges():
    data = _json_body()
    path = _require_path(data)
    ranges = get_core().add_ranges(path, _parse_selections(data))
    return jsonify(_ranges_payload(path, ranges))


@app.route("/api/ranges", methods=["DELETE"])
def api_remove_ranges():
    data = _json_body()
    path = _require_path(data)
    ranges = get_core().remove_ranges(path, _parse_selections(data))
    return jsonify(_ranges_payload(path, ranges))


@app.route("/api/ranges/clear", methods=["POST"])
def api_clear_ranges():
    data = _json_body()
    if data.get("all"):
        get_core().clear_all_ranges()
        return jsonify({"cleared": "all"})
    path = _require_path(data)
    get_core().clear_ranges(path)
    return jsonify(_ranges_payload(path, []))


@app.route("/api/report")
def api_report():
    return get_core().generate_report(), 200, {"Content-Type": "text/plain; charset=utf-8"}


@app.route("/api/stats")
def api_stats():
    path = request.args.get("path") or None
    return jsonify(get_core().get_stats(path).to_dict())


@app.route("/api/refresh", methods=["POST"])
def api_refresh():
    core = get_core()
    core.rebuild()
    return jsonify({"revision": core.revision})


@app.route("/api/events", methods=["POST"])
def api_events():
    """
    File-system change notifications from a watcher.
    Receives JSON: { "kind": "create" | "change" | "delete", "path": "..." }
    or { "events": [ {kind, path}, ... ] }.
    """
    data = _json_body()
    events = data.get("events", [data])
    if not isinstance(events, list):
        raise BadRequest("events must be a list")
    parsed = []
    for event in events:
        if not isinstance(event, dict):
            raise BadRequest("each event must be an object")
        kind = event.get("kind")
        if kind not in FILE_EVENT_KINDS:
            raise BadRequest(f"unknown file event {kind!r}")
        parsed.append((kind, _require_path(event)))
    core = get_core()
    for kind, path in parsed:
        core.notify_file_event(kind, path)
    return jsonify({"accepted": len(events), "rebuildPending": core.rebuild_pending})


@app.route("/api/config", methods=["GET"])
def api_get_config():
    return jsonify(get_core().settings.to_dict())


@app.route("/api/config", methods=["PUT", "POST"])
def api_update_config():
    settings = get_core().update_settings(_json_body())
    return jsonify(settings.to_dict())


def main():
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    get_core()
    app.run(host="127.0.0.1", port=int(os.getenv("REPOTXT_PORT", "5000")), debug=False)


if __name__ == "__main__":
    main()
