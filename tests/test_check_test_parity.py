# SPDX-License-Identifier: MIT
"""Tests for scripts/check_test_parity.py."""

from __future__ import annotations

import importlib.util
from pathlib import Path
from types import ModuleType

import pytest

_SCRIPT = Path(__file__).resolve().parent.parent / "scripts" / "check_test_parity.py"


def _load() -> ModuleType:
    spec = importlib.util.spec_from_file_location("check_test_parity", _SCRIPT)
    assert spec is not None and spec.loader is not None
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


parity = _load()


class TestCountLoc:
    def test_skips_blank_and_comment_lines(self, tmp_path: Path) -> None:
        path = tmp_path / "m.py"
        path.write_text("# header\n\nx = 1\n    # indented comment\ny = 2\n", encoding="utf-8")
        assert parity.count_loc(path) == 2


class TestExpectedTestFile:
    def test_default_prefix(self) -> None:
        assert parity.expected_test_file("merge", "test_threatlens_", {}).name == (
            "test_threatlens_merge.py"
        )

    def test_override(self) -> None:
        path = parity.expected_test_file("output", "test_threatlens_", {"output": "test_x.py"})
        assert path.name == "test_x.py"


class TestFindViolations:
    def test_repository_has_no_violations(self) -> None:
        assert parity.find_violations() == []

    def test_missing_test_reported(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        src = tmp_path / "src"
        src.mkdir()
        (src / "big.py").write_text("x = 1\n" * 60, encoding="utf-8")
        (src / "small.py").write_text("x = 1\n", encoding="utf-8")
        monkeypatch.setattr(parity, "SRC_DIR", src)
        monkeypatch.setattr(parity, "TEST_DIR", tmp_path / "tests")
        monkeypatch.setattr(parity, "PACKAGES", [(src, "test_pkg_", {})])
        assert parity.find_violations() == ["big.py (60 LOC) -> missing test_pkg_big.py"]

    def test_check_reports_ok(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert parity.check() is True
        assert "All source modules have test files." in capsys.readouterr().out
