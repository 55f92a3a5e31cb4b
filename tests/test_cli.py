"""Tests for the bucketstore CLI.

Tests cover:
1. put/get roundtrip through files and stdio
2. ls, rm, exists, mv output
3. Exit codes: 2 for bucket store errors, 3 for a missing object on exists
"""

from __future__ import annotations

import io
import json
import sys
from pathlib import Path

import pytest

from bucketstore import for_uri
from bucketstore.cli import main


class TestPutGet:
    def test_put_from_file_then_get_to_file(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        source = tmp_path / "source.txt"
        source.write_bytes(b"file content")
        target = tmp_path / "target.txt"

        assert main(["put", "inmemory://bucket/file.txt", "--input", str(source)]) == 0
        put_output = json.loads(capsys.readouterr().out)
        assert put_output == {"ok": True, "uri": "inmemory://bucket/file.txt"}

        assert main(["get", "inmemory://bucket/file.txt", "--output", str(target)]) == 0
        get_output = json.loads(capsys.readouterr().out)
        assert get_output["size"] == len(b"file content")
        assert target.read_bytes() == b"file content"

    def test_put_from_stdin(
        self, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
    ) -> None:
        monkeypatch.setattr(sys, "stdin", io.TextIOWrapper(io.BytesIO(b"from stdin")))

        assert main(["put", "inmemory://bucket/piped"]) == 0
        assert for_uri("inmemory://bucket/piped").download().content == b"from stdin"

    def test_get_to_stdout(self, capsysbinary: pytest.CaptureFixture[bytes]) -> None:
        for_uri("inmemory://bucket/raw.bin").upload(b"\x00\x01binary")

        assert main(["get", "inmemory://bucket/raw.bin"]) == 0
        assert capsysbinary.readouterr().out == b"\x00\x01binary"


class TestCommands:
    def test_ls(self, capsys: pytest.CaptureFixture[str]) -> None:
        for key in ("a/1", "a/2", "b/1"):
            for_uri(f"inmemory://bucket/{key}").upload("x")

        assert main(["ls", "inmemory://bucket/a", "--page-size", "1"]) == 0
        assert capsys.readouterr().out.splitlines() == [
            "inmemory://bucket/a/1",
            "inmemory://bucket/a/2",
        ]

    def test_rm(self, capsys: pytest.CaptureFixture[str]) -> None:
        for_uri("inmemory://bucket/doomed").upload("x")

        assert main(["rm", "inmemory://bucket/doomed"]) == 0
        assert json.loads(capsys.readouterr().out)["deleted"] is True
        assert for_uri("inmemory://bucket/doomed").exists() is False

    def test_exists(self, capsys: pytest.CaptureFixture[str]) -> None:
        for_uri("inmemory://bucket/present").upload("x")

        assert main(["exists", "inmemory://bucket/present"]) == 0
        assert json.loads(capsys.readouterr().out)["exists"] is True

    def test_exists_missing_returns_3(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["exists", "inmemory://bucket/absent"]) == 3
        assert json.loads(capsys.readouterr().out)["exists"] is False

    def test_mv(self, capsys: pytest.CaptureFixture[str]) -> None:
        for_uri("inmemory://bucket/old").upload("payload")

        assert main(["mv", "inmemory://bucket/old", "inmemory://bucket/new"]) == 0
        assert json.loads(capsys.readouterr().out) == {
            "from": "inmemory://bucket/old",
            "ok": True,
            "to": "inmemory://bucket/new",
        }
        assert for_uri("inmemory://bucket/new").download().content == b"payload"

    def test_no_command_prints_help(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert main([]) == 0
        assert "usage" in capsys.readouterr().out.lower()


class TestErrors:
    def test_missing_object_returns_2(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["get", "inmemory://bucket/missing"]) == 2

        output = json.loads(capsys.readouterr().out)
        assert output["ok"] is False
        assert output["error"]["code"] == "ObjectNotFoundError"

    def test_unknown_adapter_returns_2(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["ls", "ftp://bucket/"]) == 2
        assert json.loads(capsys.readouterr().out)["error"]["code"] == "UnknownAdapterError"

    def test_unparseable_uri_returns_2(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["rm", "no-scheme"]) == 2
        assert json.loads(capsys.readouterr().out)["error"]["code"] == "KeyParseError"

    def test_cross_adapter_move_returns_2(self, capsys: pytest.CaptureFixture[str]) -> None:
        for_uri("inmemory://bucket/a").upload("x")

        assert main(["mv", "inmemory://bucket/a", "disk://bucket/a"]) == 2
        assert json.loads(capsys.readouterr().out)["error"]["code"] == "InvalidArgumentError"

    def test_missing_input_file_returns_1(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        missing = tmp_path / "missing.txt"

        assert main(["put", "inmemory://bucket/key", "--input", str(missing)]) == 1
        assert json.loads(capsys.readouterr().out)["error"]["code"] == "INTERNAL_ERROR"
