"""Shared fixtures for building throwaway sites under tmp_path."""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import Callable

import pytest

from mdpress.cli import parse_args


@pytest.fixture
def site_root(tmp_path: Path) -> Path:
    """Empty site with the default directory layout."""
    (tmp_path / "posts").mkdir()
    (tmp_path / "pages").mkdir()
    return tmp_path


@pytest.fixture
def write_file(site_root: Path) -> Callable[[str, str], Path]:
    """Write a UTF-8 file relative to the site root."""

    def _write(rel: str, text: str) -> Path:
        path = site_root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def site_args(site_root: Path) -> Callable[..., argparse.Namespace]:
    """Parse CLI options for the temp site, ignoring any config in the cwd."""

    def _args(*extra: str) -> argparse.Namespace:
        return parse_args(
            [
                "--config",
                str(site_root / "site.toml"),
                "--root",
                str(site_root),
                "--build-workers",
                "1",
                *extra,
            ]
        )

    return _args
