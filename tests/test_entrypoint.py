"""Tests for the uvicorn entry point and model config"""

from datetime import datetime, timezone
from types import SimpleNamespace

import uvicorn

from timetrack.__main__ import main
from timetrack.config import HOST, PORT
from timetrack.models import TimeEntry


def test_main_serves_app(monkeypatch):
    calls = []
    monkeypatch.setattr(uvicorn, "run", lambda *args, **kwargs: calls.append((args, kwargs)))

    main()

    assert calls == [(("timetrack.main:app",), {"host": HOST, "port": PORT})]


def test_time_entry_reads_attributes():
    now = datetime(2025, 10, 9, 8, 0, tzinfo=timezone.utc)
    row = SimpleNamespace(
        id=1, user_id="user-1", topic_id=None, description=None,
        start_time=now, end_time=now, duration=60, created_at=None,
    )

    assert TimeEntry.model_validate(row).duration == 60
