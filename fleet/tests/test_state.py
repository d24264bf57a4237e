"""Tests for the host-side node state store."""
from __future__ import annotations

import shutil
import stat
from unittest.mock import patch

import pytest

from fleet.errors import NodeNotFoundError
from fleet.state import ADDRESS_FILE, INITIALIZED_MARKER, NodeStateStore


NAME = "cysic-node-123456"


class TestEnsure:
    """Tests for directory creation."""

    def test_creates_both_directories(self, state):
        data_dir, log_dir = state.ensure(NAME)

        assert data_dir == state.data_root / NAME
        assert log_dir == state.log_root / NAME
        assert data_dir.is_dir()
        assert log_dir.is_dir()

    def test_directories_are_world_writable(self, state):
        data_dir, log_dir = state.ensure(NAME)

        for path in (data_dir, log_dir):
            assert stat.S_IMODE(path.stat().st_mode) == 0o777

    def test_is_idempotent(self, state):
        data_dir, _ = state.ensure(NAME)
        (data_dir / INITIALIZED_MARKER).touch()

        state.ensure(NAME)

        assert (data_dir / INITIALIZED_MARKER).exists()

    def test_expands_user_in_roots(self, monkeypatch, tmp_path):
        monkeypatch.setenv("HOME", str(tmp_path))

        store = NodeStateStore("~/data", "~/logs")

        assert store.data_dir(NAME) == tmp_path / "data" / NAME


class TestAddress:
    """Tests for the persisted reward address."""

    def test_write_then_read(self, state):
        state.ensure(NAME)

        state.write_address(NAME, "0x000000999999")

        assert state.read_address(NAME) == "0x000000999999"
        assert (state.data_dir(NAME) / ADDRESS_FILE).read_text() == "0x000000999999\n"

    def test_write_overwrites(self, state):
        state.ensure(NAME)
        state.write_address(NAME, "0xAAAA")

        state.write_address(NAME, "0xBBBB")

        assert state.read_address(NAME) == "0xBBBB"

    def test_read_missing_raises_not_found(self, state):
        state.ensure(NAME)

        with pytest.raises(NodeNotFoundError):
            state.read_address(NAME)

    def test_read_empty_file_raises_not_found(self, state):
        state.ensure(NAME)
        (state.data_dir(NAME) / ADDRESS_FILE).write_text("\n")

        with pytest.raises(NodeNotFoundError):
            state.read_address(NAME)

    def test_clear_address(self, state):
        state.ensure(NAME)
        state.write_address(NAME, "0xAAAA")

        state.clear_address(NAME)
        state.clear_address(NAME)

        assert not (state.data_dir(NAME) / ADDRESS_FILE).exists()


class TestInitializedMarker:
    """Tests for the initialized marker."""

    def test_clear_removes_marker(self, state):
        state.ensure(NAME)
        (state.data_dir(NAME) / INITIALIZED_MARKER).touch()
        assert state.is_initialized(NAME)

        state.clear_initialized(NAME)

        assert not state.is_initialized(NAME)

    def test_clear_without_marker_is_noop(self, state):
        state.ensure(NAME)

        state.clear_initialized(NAME)

        assert not state.is_initialized(NAME)


class TestRemove:
    """Tests for directory removal."""

    def test_removes_both_directories(self, state):
        data_dir, log_dir = state.ensure(NAME)
        (log_dir / "verifier.log").write_text("started\n")

        result = state.remove(NAME)

        assert result.success
        assert result.data_removed and result.logs_removed
        assert not data_dir.exists()
        assert not log_dir.exists()

    def test_missing_directories_are_not_errors(self, state):
        result = state.remove(NAME)

        assert result.success
        assert not result.data_removed
        assert not result.logs_removed

    def test_failure_on_one_tree_still_removes_other(self, state):
        data_dir, log_dir = state.ensure(NAME)
        real_rmtree = shutil.rmtree

        def fail_on_data(path, *args, **kwargs):
            if path == data_dir:
                raise PermissionError("permission denied")
            return real_rmtree(path)

        with patch("fleet.state.shutil.rmtree", side_effect=fail_on_data):
            result = state.remove(NAME)

        assert not result.success
        assert "permission denied" in result.errors[0]
        assert data_dir.exists()
        assert not log_dir.exists()
        assert result.logs_removed


class TestListNames:
    """Tests for enumerating persisted nodes."""

    def test_sorted_names(self, state):
        state.ensure("cysic-node-bbbbbb")
        state.ensure("cysic-node-aaaaaa")

        assert state.list_names() == ["cysic-node-aaaaaa", "cysic-node-bbbbbb"]

    def test_missing_root_returns_empty(self, state):
        assert state.list_names() == []

    def test_ignores_files(self, state):
        state.data_root.mkdir(parents=True)
        (state.data_root / "notes.txt").write_text("x")

        assert state.list_names() == []
