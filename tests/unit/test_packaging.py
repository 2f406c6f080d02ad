from __future__ import annotations

from pathlib import Path
import tomllib


def _pyproject() -> dict:
    pyproject_path = Path(__file__).resolve().parents[2] / "pyproject.toml"
    return tomllib.loads(pyproject_path.read_text(encoding="utf-8"))


def test_runtime_dependencies_cover_redis_and_yaml() -> None:
    dependencies = _pyproject().get("project", {}).get("dependencies", [])
    assert any(str(item).startswith("redis") for item in dependencies)
    assert any(str(item).startswith("PyYAML") for item in dependencies)


def test_cli_entry_point_and_default_config_are_packaged() -> None:
    pyproject = _pyproject()
    assert pyproject["project"]["scripts"]["kvscope"] == "kvscope.cli:main"
    assert "config/defaults.yml" in pyproject["tool"]["setuptools"]["package-data"]["kvscope"]
