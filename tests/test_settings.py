from __future__ import annotations

import json
import logging

from minitodo.generate_openapi import generate_openapi
from minitodo.settings import get_settings


def test_defaults(monkeypatch):
    for name in ["PERSISTENCE_BACKEND", "SQLITE_DB_PATH", "CORS_ALLOW_ORIGINS", "LOG_LEVEL", "REMINDER_LEAD_MINUTES"]:
        monkeypatch.delenv(name, raising=False)
    s = get_settings()
    assert s.persistence_backend == "memory"
    assert s.sqlite_db_path == "./data/tasks.db"
    assert s.cors_allow_origins == ["*"]
    assert s.log_level == logging.INFO
    assert s.reminder_lead_minutes == 10


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("PERSISTENCE_BACKEND", "SQLite")
    monkeypatch.setenv("CORS_ALLOW_ORIGINS", "http://a.test, http://b.test,")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    monkeypatch.setenv("REMINDER_LEAD_MINUTES", "0")
    s = get_settings()
    assert s.persistence_backend == "sqlite"
    assert s.cors_allow_origins == ["http://a.test", "http://b.test"]
    assert s.log_level == logging.DEBUG
    assert s.reminder_lead_minutes == 0


def test_invalid_values_fall_back(monkeypatch):
    monkeypatch.setenv("PERSISTENCE_BACKEND", "postgres")
    monkeypatch.setenv("LOG_LEVEL", "chatty")
    monkeypatch.setenv("REMINDER_LEAD_MINUTES", "-5")
    s = get_settings()
    assert s.persistence_backend == "memory"
    assert s.log_level == logging.INFO
    assert s.reminder_lead_minutes == 10


def test_generate_openapi_writes_schema(tmp_path, monkeypatch):
    monkeypatch.setenv("PERSISTENCE_BACKEND", "memory")
    out = generate_openapi(str(tmp_path / "interfaces" / "openapi.json"))
    with open(out, encoding="utf-8") as f:
        schema = json.load(f)
    assert "/api/v1/tasks/" in schema["paths"]
    assert "/api/v1/tasks/{task_id}/reminder" in schema["paths"]
    assert {t["name"] for t in schema["tags"]} >= {"health", "tasks"}
