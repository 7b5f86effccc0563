#!/usr/bin/env python3

import json
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "tools"))

from tripmaker import event_log


def test_log_event_writes_jsonl(tmp_path):
    path = tmp_path / "nested" / "events.jsonl"
    event_log.configure(path)

    event_log.log_event("login_success", component="accounts", user_id="u-1")

    lines = path.read_text().strip().splitlines()
    assert len(lines) == 1

    payload = json.loads(lines[0])
    assert payload["event_type"] == "login_success"
    assert payload["component"] == "accounts"
    assert payload["user_id"] == "u-1"
    assert "timestamp" in payload


def test_env_path_used_when_not_configured(tmp_path, monkeypatch):
    event_log.configure(None)
    monkeypatch.setenv("EVENT_LOG_PATH", str(tmp_path / "env.jsonl"))

    assert event_log.event_log_path() == tmp_path / "env.jsonl"


def test_unwritable_log_is_ignored(tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("")
    event_log.configure(blocker / "events.jsonl")

    event_log.log_event("login_failed", component="accounts")
