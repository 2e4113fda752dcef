"""
Layout lookup and application.

A layout is ``<name>.html`` in the site's templates directory, falling
back to the layouts bundled with the package. A layout may start with
its own front matter naming a parent ``layout``; its output then becomes
the parent's ``{{ content }}``.
"""
from __future__ import annotations

import re
from pathlib import Path
from typing import Iterable, Optional

from .content import layout_name, parse_front_matter
from .errors import LayoutCycle, TemplateNotFound
from .render import render_template

BUILTIN_DIR = Path(__file__).parent / "templates"
# Layouts are looked up by bare name only, never by path.
SAFE_NAME_RE = re.compile(r"[\w-]+(?:\.[\w-]+)*")


class Layouts:
    def __init__(self, templates_dir: Optional[Path] = None, builtin_dir: Optional[Path] = BUILTIN_DIR):
        self.search_path = [d for d in (templates_dir, builtin_dir) if d is not None]
        self._cache: dict[str, tuple[str, str, Path]] = {}

    def find(self, name: str) -> Optional[Path]:
        if not SAFE_NAME_RE.fullmatch(name):
            return None
        for directory in self.search_path:
            candidate = directory / f"{name}.html"
            if candidate.is_file():
                return candidate
        return None

    def load(self, name: str) -> tuple[str, str, Path]:
        """Return (parent layout, template body, path) for a layout."""
        if name in self._cache:
            return self._cache[name]
        path = self.find(name)
        if path is None:
            raise TemplateNotFound(name)
        meta, body = parse_front_matter(path.read_text(encoding="utf-8"), path)
        entry = (layout_name(meta, ""), body, path)
        self._cache[name] = entry
        return entry

    def chain(self, name: str) -> list[str]:
        """Names from the innermost layout outwards."""
        chain: list[str] = []
        current = name
        while current:
            if current in chain:
                raise LayoutCycle(chain + [current])
            chain.append(current)
            current = self.load(current)[0]
        return chain

    def check(self, names: Iterable[str]) -> None:
        for name in sorted(set(names)):
            if name:
                self.chain(name)

    def render(self, name: str, content: str, **context: str) -> str:
        if not name:
            return content
        output = content
        for layout in self.chain(name):
            _, body, _ = self.load(layout)
            output = render_template(body, **{**context, "content": output})
        return output
