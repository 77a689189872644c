"""Tests for routecli.remote -- host:path parsing, ssh globbing and YAML loading."""

from __future__ import annotations

import subprocess
from pathlib import Path
from unittest.mock import patch

import pytest

from routecli.exceptions import RemoteIOFailure, RoutecliError
from routecli.remote import (
    SSH_COMMAND,
    expand_remote_glob,
    is_data_source,
    load_yaml,
    split_remote,
)


def _completed(stdout: str = "", returncode: int = 0, stderr: str = "") -> subprocess.CompletedProcess:
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr=stderr)


class TestSplitRemote:
    @pytest.mark.parametrize(
        ("token", "expected"),
        [
            ("host:/a/b.yml", ("host", "/a/b.yml")),
            ("user@db.example.com:data/*.yml", ("user@db.example.com", "data/*.yml")),
            ("plain", None),
            ("host:", None),
        ],
    )
    def test_split(self, token: str, expected) -> None:
        assert split_remote(token) == expected

    def test_existing_local_file_is_not_remote(self, tmp_path: Path, monkeypatch) -> None:
        monkeypatch.chdir(tmp_path)
        (tmp_path / "odd:name.yml").write_text("a: 1\n")
        assert split_remote("odd:name.yml") is None
        assert is_data_source("odd:name.yml")

    def test_is_data_source(self, tmp_path: Path) -> None:
        path = tmp_path / "x.yml"
        path.write_text("a: 1\n")
        assert is_data_source(str(path))
        assert is_data_source("host:/x.yml")
        assert not is_data_source("27")
        assert not is_data_source({"a": 1})


class TestExpandRemoteGlob:
    def test_non_glob_unchanged(self) -> None:
        with patch("routecli.remote.subprocess.run") as mock_run:
            assert expand_remote_glob("host:/a.yml") == ["host:/a.yml"]
            assert expand_remote_glob("local.yml") == ["local.yml"]
        mock_run.assert_not_called()

    def test_glob_lists_matches_in_order(self, captured) -> None:
        with patch(
            "routecli.remote.subprocess.run",
            return_value=_completed("/d/b.yml\n/d/a.yml\n\n"),
        ) as mock_run:
            assert expand_remote_glob("host:/d/*.yml", captured.manager) == [
                "host:/d/b.yml",
                "host:/d/a.yml",
            ]
        assert mock_run.call_args.args[0] == [*SSH_COMMAND, "host", "ls", "/d/*.yml"]
        assert "Remote glob : host:/d/*.yml" in captured.stderr

    def test_failure_carries_last_two_stderr_lines(self) -> None:
        failed = _completed(returncode=2, stderr="a\nb\nc\n")
        with patch("routecli.remote.subprocess.run", return_value=failed):
            with pytest.raises(RemoteIOFailure) as exc_info:
                expand_remote_glob("host:/d/*.yml")
        assert str(exc_info.value).endswith("b\nc")

    def test_ssh_missing(self) -> None:
        with patch("routecli.remote.subprocess.run", side_effect=FileNotFoundError("ssh")):
            with pytest.raises(RemoteIOFailure, match="Could not run ssh"):
                expand_remote_glob("host:/d/?.yml")


class TestLoadYaml:
    def test_local(self, tmp_path: Path) -> None:
        path = tmp_path / "doc.yml"
        path.write_text("name: w1\n")
        assert load_yaml(str(path)) == {"name": "w1"}

    def test_remote(self) -> None:
        with patch("routecli.remote.subprocess.run", return_value=_completed("- 1\n- 2\n")) as mock_run:
            assert load_yaml("host:/d/a.yml") == [1, 2]
        assert mock_run.call_args.args[0][-3:] == ["host", "cat", "/d/a.yml"]

    def test_empty_document(self, tmp_path: Path) -> None:
        path = tmp_path / "empty.yml"
        path.write_text("")
        with pytest.raises(RoutecliError, match="Invalid YAML"):
            load_yaml(str(path))

    def test_unreadable(self, tmp_path: Path) -> None:
        with pytest.raises(RoutecliError, match="Cannot read"):
            load_yaml(str(tmp_path / "missing.yml"))
