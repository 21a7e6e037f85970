"""Shared fixtures for dirsnap tests."""

from __future__ import annotations

import os
from collections.abc import Callable
from pathlib import Path

import pytest

from dirsnap import walker


@pytest.fixture(autouse=True)
def isolated_dirs(tmp_path_factory: pytest.TempPathFactory, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point the default config and cache locations at a scratch directory.

    Keeps tests away from the real per-user config and cache files.
    """
    home = tmp_path_factory.mktemp("dirsnap-home")
    monkeypatch.setenv("DIRSNAP_CONFIG", str(home / "config.json"))
    monkeypatch.setenv("DIRSNAP_CACHE", str(home / "dirs.txt"))
    return home


@pytest.fixture
def sample_tree(tmp_path: Path) -> Path:
    """Create a standard test directory tree.

    Structure::

        root/
        ├── .git/
        │   └── objects/
        ├── b/
        │   └── c/
        │       └── d/
        ├── build/
        │   └── lib/
        ├── docs/
        │   └── guide.md
        └── README.md
    """
    root = tmp_path / "root"
    (root / ".git" / "objects").mkdir(parents=True)
    (root / "b" / "c" / "d").mkdir(parents=True)
    (root / "build" / "lib").mkdir(parents=True)
    (root / "docs").mkdir()
    (root / "docs" / "guide.md").write_text("guide")
    (root / "README.md").write_text("readme")
    return root


@pytest.fixture
def failing_scandir(monkeypatch: pytest.MonkeyPatch) -> Callable[[Path], None]:
    """Make ``os.scandir`` fail with ``PermissionError`` for chosen directories.

    Running as root defeats chmod-based permission tests, so listing
    failures are injected instead.
    """
    real_scandir = os.scandir
    blocked: set[str] = set()

    def fake_scandir(path: str) -> object:
        if os.fspath(path) in blocked:
            raise PermissionError(13, "Permission denied", os.fspath(path))
        return real_scandir(path)

    monkeypatch.setattr(walker.os, "scandir", fake_scandir)

    def block(path: Path) -> None:
        blocked.add(str(path))

    return block

