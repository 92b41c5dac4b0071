#!/usr/bin/env python3
"""stepsmith HTTP API - reconcile steps and run patch sessions over JSON."""

import dataclasses
import logging
import os
import threading
import time
import uuid

from flask import Flask, jsonify, request

from agents.builder import BuildAgent
from agents.patch_composer import PatchComposer
from config.defaults import DEFAULTS
from core.orchestrator import Orchestrator
from core.reconciler import reconcile_files
from core.workspace import Workspace

logger = logging.getLogger("stepsmith.server")

app = Flask(__name__)
composer = PatchComposer()
history = []

# Finished sessions keyed by job_id: {id: {"result": dict, "created": timestamp}}
_jobs = {}
_jobs_lock = threading.Lock()
_MAX_JOBS = 50
_JOB_TTL = 3600


def _cleanup_jobs():
    """Remove expired jobs. Called under _jobs_lock."""
    now = time.time()
    expired = [jid for jid, job in _jobs.items() if now - job["created"] > _JOB_TTL]
    for jid in expired:
        del _jobs[jid]
    if len(_jobs) > _MAX_JOBS:
        by_age = sorted(_jobs.items(), key=lambda x: x[1]["created"])
        for jid, _ in by_age[:len(_jobs) - _MAX_JOBS]:
            del _jobs[jid]


def _store_job(result):
    job_id = str(uuid.uuid4())[:8]
    with _jobs_lock:
        _cleanup_jobs()
        _jobs[job_id] = {"result": result, "created": time.time()}
    return job_id


def _get_job(job_id):
    """Stored result for a job ID, or None if not found/expired."""
    with _jobs_lock:
        job = _jobs.get(job_id)
    if not job:
        return None
    if time.time() - job["created"] > _JOB_TTL:
        with _jobs_lock:
            _jobs.pop(job_id, None)
        return None
    return job["result"]


def _result_to_dict(result):
    """Serialize SessionResult to a JSON-safe dict."""
    data = dataclasses.asdict(result)
    data["ok"] = result.ok
    data["report"] = composer.run(result)
    return data


def make_builder(project_dir, tag):
    return BuildAgent(project_dir, tag=tag)


@app.route("/api/reconcile", methods=["POST"])
def api_reconcile():
    """Body: {"feature": feature text, "steps": step definitions text}."""
    data = request.get_json(silent=True)
    if not data or not isinstance(data.get("feature"), str) or not isinstance(data.get("steps"), str):
        return jsonify({"error": "Missing feature or steps text"}), 400

    result = reconcile_files(data["feature"], data["steps"])
    return jsonify({
        "complete": result.complete,
        "missing": [step.text for step in result.missing],
        "stubs": result.stubs,
    })


@app.route("/api/session", methods=["POST"])
def api_session():
    """Run a full session synchronously.

    Body: {"project_dir": path, "steps_file": relative path, "tag": optional,
    "max_attempts": optional int}.
    """
    data = request.get_json(silent=True)
    if not data or not data.get("project_dir") or not data.get("steps_file"):
        return jsonify({"error": "Missing project_dir or steps_file"}), 400

    max_attempts = data.get("max_attempts", DEFAULTS["max_attempts"])
    if not isinstance(max_attempts, int) or max_attempts < 0:
        return jsonify({"error": "max_attempts must be a non-negative integer"}), 400
    if not os.path.isdir(data["project_dir"]):
        return jsonify({"error": f"Project directory not found: {data['project_dir']}"}), 400

    workspace = Workspace(data["project_dir"])
    orchestrator = Orchestrator(
        workspace, make_builder(workspace.root, data.get("tag", "")),
        steps_file=data["steps_file"],
    )
    try:
        result = orchestrator.run_session(max_attempts=max_attempts)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    payload = _result_to_dict(result)
    payload["project_dir"] = workspace.root
    payload["job_id"] = _store_job(payload)
    logger.info("session %s: %s after %d attempt(s)", payload["job_id"], payload["status"], payload["attempts"])
    history.append({
        "job_id": payload["job_id"],
        "project_dir": workspace.root,
        "status": payload["status"],
        "attempts": payload["attempts"],
    })
    return jsonify(payload)


@app.route("/api/status/<job_id>")
def api_status(job_id):
    result = _get_job(job_id)
    if not result:
        return jsonify({"error": "Job not found"}), 404
    return jsonify(result)


@app.route("/api/history")
def api_history():
    return jsonify(history)


if __name__ == "__main__":
    logging.basicConfig(
        level=os.environ.get("STEPSMITH_LOG_LEVEL", DEFAULTS["log_level"]).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    port = int(os.environ.get("PORT", 5001))
    print(f"stepsmith API running at http://localhost:{port}")
    app.run(debug=False, port=port)
