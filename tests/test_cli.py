"""Unit tests for main.py -- the usergate command line."""

from __future__ import annotations

import re

import pytest

import main


def test_gen_key_prints_hex_key(capsys):
    assert main.main(["gen-key"]) == 0
    key = capsys.readouterr().out.strip()
    assert re.fullmatch(r"[0-9a-f]{64}", key)


def test_gen_key_rejects_too_few_bytes(capsys):
    assert main.main(["gen-key", "--bytes", "8"]) == 2
    assert "--bytes" in capsys.readouterr().out


def test_command_is_required():
    with pytest.raises(SystemExit):
        main.main([])


def test_serve_runs_uvicorn(monkeypatch):
    calls = {}

    def fake_run(app, **kwargs):
        calls["app"] = app
        calls.update(kwargs)

    monkeypatch.setattr("uvicorn.run", fake_run)
    assert main.main(["serve", "--port", "9001"]) == 0
    assert calls == {"app": "asgi:app", "host": "127.0.0.1", "port": 9001, "reload": False}
