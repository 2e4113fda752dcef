from __future__ import annotations

import html
import json
import sys
from pathlib import Path
from typing import Optional

import yaml

if sys.version_info >= (3, 11):
    import tomllib as toml
else:
    import tomli as toml

from .errors import ConfigError
from .render import render_markdown

CONFIG_CANDIDATES = ("site.toml", "site.yaml", "site.yml", "site.json")
# suffix -> (format name, parser, parse error)
CONFIG_FORMATS = {
    ".toml": ("TOML", toml.loads, toml.TOMLDecodeError),
    ".yaml": ("YAML", yaml.safe_load, yaml.YAMLError),
    ".yml": ("YAML", yaml.safe_load, yaml.YAMLError),
    ".json": ("JSON", json.loads, json.JSONDecodeError),
}


def find_config(root: Path) -> Path:
    for name in CONFIG_CANDIDATES:
        candidate = root / name
        if candidate.exists():
            return candidate
    return root / CONFIG_CANDIDATES[0]


def load_config(path: Path) -> dict:
    """Site options from a config file; a missing file means no options."""
    if not path.exists():
        return {}
    kind, parse, parse_error = CONFIG_FORMATS.get(path.suffix.lower(), CONFIG_FORMATS[".json"])
    try:
        data = parse(path.read_text(encoding="utf-8"))
    except (parse_error, UnicodeDecodeError) as exc:
        raise ConfigError(f"Invalid {kind} in config file: {exc}", path) from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError("Config must be a mapping", path)
    return data


# About files are rendered by suffix; anything else is plain text.
ABOUT_RENDERERS = {".html": str, ".htm": str, ".md": render_markdown}


def _option(args: object, key: str) -> str:
    return (getattr(args, key, "") or "").strip()


def _snippet_file(args: object, key: str, label: str) -> Optional[Path]:
    """The file named by option ``key``, relative to the config file."""
    value = _option(args, key)
    if not value:
        return None
    path = Path(value)
    if not path.is_absolute():
        path = Path(getattr(args, "config", "site.toml")).resolve().parent / path
    if not path.exists():
        print(f"{label} file not found: {path}", file=sys.stderr)
        return None
    return path


def text_to_html(text: str) -> str:
    return "<p>{}</p>".format(html.escape(text).replace("\n", "<br>"))


def resolve_analytics(args: object) -> str:
    inline = _option(args, "analytics_html")
    if inline:
        return inline
    path = _snippet_file(args, "analytics_file", "Analytics")
    return path.read_text(encoding="utf-8") if path else ""


def resolve_about_html(args: object) -> str:
    """HTML for the sidebar About panel.

    Inline HTML wins over a file, a file over ``about_text``; the site
    description is the last resort.
    """
    inline = _option(args, "about_html")
    if inline:
        return inline
    path = _snippet_file(args, "about_file", "About")
    if path is not None:
        renderer = ABOUT_RENDERERS.get(path.suffix.lower(), text_to_html)
        return renderer(path.read_text(encoding="utf-8"))
    return text_to_html(_option(args, "about_text") or str(getattr(args, "site_description", "")))
