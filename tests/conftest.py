"""Pytest configuration and fixtures."""

from pathlib import Path
from typing import Any

import pytest

from taskforge.config import get_settings
from taskforge.tools.registry import ToolRegistry

from helpers import FakeModelCaller


@pytest.fixture(autouse=True)
def clear_settings_cache():
    """Settings are cached per process; reset them around every test."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def fake_caller() -> FakeModelCaller:
    return FakeModelCaller()


@pytest.fixture
def echo_registry() -> ToolRegistry:
    """Registry with a few deterministic tools."""
    registry = ToolRegistry()

    def echo(value: Any = None, **_: Any) -> Any:
        return value

    async def upper(text: str = "", **_: Any) -> str:
        return text.upper()

    def fail(**_: Any) -> Any:
        raise RuntimeError("tool exploded")

    registry.register_function("echo", echo, description="Return the value argument")
    registry.register_function("upper", upper, description="Uppercase text")
    registry.register_function("fail", fail, description="Always fails")
    return registry


@pytest.fixture
def sample_codebase(tmp_path: Path) -> Path:
    """Small directory tree with code, docs and excluded folders."""
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "app.py").write_text("def main():\n    return 1\n", encoding="utf-8")
    (tmp_path / "src" / "util.ts").write_text("export const x = 1;\n", encoding="utf-8")
    (tmp_path / "README.md").write_text("# Readme\n", encoding="utf-8")
    (tmp_path / "node_modules").mkdir()
    (tmp_path / "node_modules" / "dep.js").write_text("module.exports = {};\n", encoding="utf-8")
    (tmp_path / "main.go").write_text("package main\n", encoding="utf-8")
    return tmp_path
