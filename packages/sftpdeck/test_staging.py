"""Unit tests for scoped staging files."""

from pathlib import Path

import pytest

from sftpdeck.exceptions import LocalResourceError
from sftpdeck.staging import staged_file


class TestStagedFile:
    """Tests for scoped staging files."""

    @pytest.mark.asyncio
    async def test_removed_after_use(self, tmp_path):
        async with staged_file(tmp_path) as path:
            path.write_bytes(b"data")
            assert path.exists()
        assert not path.exists()
        assert list(tmp_path.iterdir()) == []

    @pytest.mark.asyncio
    async def test_removed_on_error(self, tmp_path):
        with pytest.raises(RuntimeError):
            async with staged_file(tmp_path) as path:
                path.write_bytes(b"data")
                raise RuntimeError("remote failure")
        assert list(tmp_path.iterdir()) == []

    @pytest.mark.asyncio
    async def test_unusable_dir(self, tmp_path):
        with pytest.raises(LocalResourceError):
            async with staged_file(tmp_path / "missing"):
                pass

    @pytest.mark.asyncio
    async def test_cleanup_failure_is_reported(self, tmp_path, monkeypatch):
        def refuse(self, missing_ok=False):
            raise PermissionError("read-only")

        with pytest.raises(LocalResourceError):
            async with staged_file(tmp_path):
                monkeypatch.setattr(Path, "unlink", refuse)
        monkeypatch.undo()
