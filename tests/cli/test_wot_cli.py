"""Tests for the nostr-wot CLI.

Tests cover:
1. Argument parsing
2. Command dispatch and exit codes
3. sync/distance/score/check/status/clear against a SQLite graph
"""

from __future__ import annotations

import json
from unittest.mock import patch

import pytest

from nostr_wot.cli.main import app, create_parser, format_time, main


ME = "a" * 64
A = "b" * 64
B = "c" * 64
T = "d" * 64
X = "e" * 64


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def env(monkeypatch, tmp_path):
    monkeypatch.setenv("NOSTR_WOT_PUBKEY", ME)
    monkeypatch.setenv("NOSTR_WOT_RELAYS", "wss://relay.test")
    monkeypatch.setenv("NOSTR_WOT_DB_PATH", str(tmp_path / "graph.sqlite"))
    monkeypatch.delenv("NOSTR_WOT_STORAGE", raising=False)
    return tmp_path


@pytest.fixture
def relays(fake_source_cls):
    """Replace the relay pool with an in-memory follow graph."""
    source = fake_source_cls({ME: [A, B], A: [T, ME], B: [T]})
    with patch("nostr_wot.local.RelayPool", return_value=source):
        yield source


@pytest.fixture
def synced(env, relays, capsys):
    assert main(["sync", "--depth", "2"]) == 0
    capsys.readouterr()
    return env


# ============================================================================
# Parser
# ============================================================================


class TestParser:
    def test_sync_defaults(self):
        args = create_parser().parse_args(["sync"])
        assert args.command == "sync"
        assert args.depth == 2

    def test_global_flags(self):
        args = create_parser().parse_args(["--json", "-v", "-r", "wss://a", "-r", "wss://b", "score", T])
        assert args.json and args.verbose
        assert args.relay == ["wss://a", "wss://b"]
        assert args.target == T

    def test_check_requires_targets(self):
        with pytest.raises(SystemExit):
            create_parser().parse_args(["check"])

    def test_max_hops(self):
        args = create_parser().parse_args(["distance", T, "--max-hops", "5"])
        assert args.max_hops == 5

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 0
        assert "usage" in capsys.readouterr().out

    def test_app_alias(self):
        assert app is main

    def test_format_time(self):
        assert len(format_time(0)) == len("1970-01-01 00:00:00")


# ============================================================================
# Commands
# ============================================================================


class TestSyncCommand:
    def test_sync(self, env, relays, capsys):
        assert main(["sync", "--depth", "2"]) == 0

        out = capsys.readouterr().out
        assert "Synced 3 identities" in out
        assert relays.requests[0] == [ME]

    def test_sync_json(self, env, relays, capsys):
        assert main(["--json", "sync", "-d", "1"]) == 0

        data = json.loads(capsys.readouterr().out)
        assert data["depth"] == 1
        assert data["resolved"] == 1

    def test_missing_pubkey(self, env, relays, monkeypatch, capsys):
        monkeypatch.delenv("NOSTR_WOT_PUBKEY")

        assert main(["sync"]) == 1
        assert "my_pubkey is required" in capsys.readouterr().err


class TestQueryCommands:
    def test_distance(self, synced, capsys):
        assert main(["distance", T]) == 0

        out = capsys.readouterr().out
        assert "Hops:    2" in out
        assert "Paths:   2" in out
        assert A in out and B in out

    def test_distance_json(self, synced, capsys):
        assert main(["--json", "distance", A]) == 0

        data = json.loads(capsys.readouterr().out)
        assert data == {"hops": 1, "paths": 1, "bridges": [], "mutual": True}

    def test_distance_not_connected(self, synced, capsys):
        assert main(["distance", X]) == 0
        assert "Not connected" in capsys.readouterr().out

    def test_invalid_target(self, synced, capsys):
        assert main(["distance", "nope"]) == 1
        assert "target must be a valid" in capsys.readouterr().err

    def test_score(self, synced, capsys):
        assert main(["score", A]) == 0
        # hops 1, mutual: 0.5 * 1.0 + 0.5
        assert capsys.readouterr().out.strip() == "1.000"

    def test_score_json(self, synced, capsys):
        assert main(["--json", "score", X]) == 0
        assert json.loads(capsys.readouterr().out) == {"pubkey": X, "score": 0.0}

    def test_check(self, synced, capsys):
        assert main(["--json", "check", A, T, X]) == 0

        data = {entry["pubkey"]: entry for entry in json.loads(capsys.readouterr().out)}
        assert data[A]["distance"] == 1
        assert data[T]["in_wot"] is True
        assert data[X]["distance"] is None

    def test_queries_without_relays(self, synced, monkeypatch, capsys):
        monkeypatch.delenv("NOSTR_WOT_RELAYS")

        assert main(["--json", "distance", A]) == 0
        assert json.loads(capsys.readouterr().out)["hops"] == 1
        assert main(["score", A]) == 0
        assert capsys.readouterr().out.strip() == "1.000"
        assert main(["--json", "check", T]) == 0
        assert json.loads(capsys.readouterr().out)[0]["in_wot"] is True

    def test_sync_still_requires_relays(self, env, monkeypatch, capsys):
        monkeypatch.delenv("NOSTR_WOT_RELAYS")

        assert main(["sync"]) == 1
        assert "At least one relay URL is required" in capsys.readouterr().err


class TestStorageCommands:
    def test_status_never_synced(self, env, capsys):
        assert main(["status"]) == 0
        assert "Never synced" in capsys.readouterr().out

    def test_status(self, synced, capsys):
        assert main(["--json", "status"]) == 0

        data = json.loads(capsys.readouterr().out)
        assert data["synced"] is True
        assert data["depth"] == 2
        assert data["identities"] == 3
        assert data["resolved"] == 3

    def test_status_without_pubkey(self, synced, monkeypatch, capsys):
        monkeypatch.delenv("NOSTR_WOT_PUBKEY")
        monkeypatch.delenv("NOSTR_WOT_RELAYS")

        assert main(["status"]) == 0
        assert "Identities: 3" in capsys.readouterr().out

    def test_db_flag(self, tmp_path, capsys):
        assert main(["--db", str(tmp_path / "other.sqlite"), "--json", "status"]) == 0
        assert json.loads(capsys.readouterr().out)["identities"] == 0

    def test_clear(self, synced, capsys):
        assert main(["clear"]) == 0
        assert "cleared" in capsys.readouterr().out

        assert main(["--json", "status"]) == 0
        data = json.loads(capsys.readouterr().out)
        assert data["synced"] is False
        assert data["identities"] == 0
