"""
Pytest configuration and fixtures for modecfg tests.
"""

import json
import os
import tempfile
from collections.abc import Callable
from pathlib import Path

import pytest

# Set test environment before importing app modules
os.environ["MODECFG_GLOBAL_ROOT"] = tempfile.mkdtemp()

from modecfg.core.config import Settings  # noqa: E402
from modecfg.core.types import Mode  # noqa: E402
from modecfg.storage.stores import StoreSet  # noqa: E402


class FakeClock:
    """Monotonic clock the tests advance by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    """Settings pointing both roots at a temporary directory."""
    project = tmp_path / "project"
    project.mkdir()
    return Settings(
        global_root=tmp_path / "global",
        project_root=project,
        cache_ttl_seconds=10.0,
        suppression_grace_seconds=1.0,
    )


@pytest.fixture
def stores(test_settings: Settings) -> StoreSet:
    return StoreSet.from_settings(test_settings)


@pytest.fixture
def write_legacy() -> Callable[..., Path]:
    """Write a .roomodes file containing the given entries."""
    def _write(path: Path, entries: list) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps({"customModes": entries}, indent=2), encoding="utf-8")
        return path
    return _write


@pytest.fixture
def write_split() -> Callable[..., Path]:
    """Write one split-format YAML file."""
    def _write(directory: Path, slug: str, body: str, ext: str = ".yaml") -> Path:
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / f"{slug}{ext}"
        path.write_text(body, encoding="utf-8")
        return path
    return _write


@pytest.fixture
def legacy_entry() -> Callable[..., dict]:
    """Factory for a legacy .roomodes entry."""
    def _entry(slug: str, name: str | None = None, groups: list | None = None) -> dict:
        return {
            "slug": slug,
            "name": name or slug.title(),
            "roleDefinition": f"You are {slug}.",
            "groups": groups if groups is not None else ["read"],
        }
    return _entry


@pytest.fixture
def sample_mode() -> Mode:
    """A mode without provenance, as a host would submit it."""
    return Mode(
        slug="architect",
        name="Architect",
        role_definition="You plan systems before they are built.",
        custom_instructions="Prefer diagrams.",
        groups={"read": None, "edit": {"fileRegex": r"\.md$", "description": "Markdown only"}},
    )


def split_mode_yaml(name: str, role: str = "You help.", groups: str = "  read:\n") -> str:
    return f"name: {name}\nroleDefinition: {role}\ngroups:\n{groups}"


@pytest.fixture
def split_yaml() -> Callable[..., str]:
    return split_mode_yaml


