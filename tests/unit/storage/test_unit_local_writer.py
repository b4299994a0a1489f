# tests/unit/storage/test_unit_local_writer.py — v1
"""Tests for storage/local_writer.py."""

from __future__ import annotations

import pytest

from teamrun.storage.local_writer import LocalWriter


class TestLocalWriter:
    @pytest.mark.asyncio
    async def test_write_creates_parents(self, tmp_path):
        writer = LocalWriter(tmp_path)
        await writer.write("a/b/c.txt", "hello")
        assert (tmp_path / "a" / "b" / "c.txt").read_text() == "hello"
        assert not (tmp_path / "a" / "b" / "c.txt.tmp").exists()

    @pytest.mark.asyncio
    async def test_bytes_and_read(self, tmp_path):
        writer = LocalWriter(tmp_path)
        await writer.write("x.bin", b"\x00\x01")
        assert await writer.read("x.bin") == b"\x00\x01"

    @pytest.mark.asyncio
    async def test_overwrite(self, tmp_path):
        writer = LocalWriter(tmp_path)
        await writer.write("f", "one")
        await writer.write("f", "two")
        assert (await writer.read("f")).decode() == "two"

    @pytest.mark.asyncio
    async def test_exists_and_list_dir(self, tmp_path):
        writer = LocalWriter(tmp_path)
        await writer.write("d/b", "")
        await writer.write("d/a", "")
        assert await writer.exists("d/a")
        assert not await writer.exists("d/z")
        assert await writer.list_dir("d") == ["a", "b"]
        assert await writer.list_dir("missing") == []

    @pytest.mark.asyncio
    async def test_absolute_paths_without_base(self, tmp_path):
        writer = LocalWriter()
        target = tmp_path / "abs.txt"
        await writer.write(str(target), "x")
        assert target.read_text() == "x"
