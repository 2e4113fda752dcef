"""
The generated site on disk.

Every page, listing and feed goes through ``OutputDir.write`` so that two
parts of a build can never claim the same file.
"""
from __future__ import annotations

import shutil
import threading
from pathlib import Path

from .errors import SiteError


class OutputDir:
    def __init__(self, root: Path):
        self.root = root
        self.owners: dict[str, str] = {}
        self._lock = threading.Lock()

    def clean(self, project_root: Path) -> None:
        """Remove the previous build, but only inside the project."""
        if not self.root.exists():
            return
        target = self.root.resolve()
        project = project_root.resolve()
        if target == project or project not in target.parents:
            raise SiteError("Refusing to clean a directory that is not inside the project", self.root)
        shutil.rmtree(target)

    def copy_static(self, static_dir: Path) -> int:
        """Mirror static assets into the output; generated pages are written later and win."""
        copied = 0
        for item in sorted(static_dir.rglob("*")):
            if item.is_file():
                dest = self.root / item.relative_to(static_dir)
                dest.parent.mkdir(parents=True, exist_ok=True)
                shutil.copy2(item, dest)
                copied += 1
        return copied

    def write(self, rel: str, text: str, owner: str) -> Path:
        with self._lock:
            previous = self.owners.get(rel)
            if previous is not None:
                raise SiteError(f"{rel} is generated by both {previous} and {owner}")
            self.owners[rel] = owner
        path = self.root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
        return path
