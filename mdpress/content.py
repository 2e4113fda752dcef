from __future__ import annotations

import datetime as dt
import hashlib
import html as html_lib
import re
import sys
from pathlib import Path
from typing import Optional

import yaml

if sys.version_info >= (3, 11):
    import tomllib as toml
else:
    import tomli as toml

from .errors import InvalidDate, MalformedFrontMatter, UnreadableContent
from .render import (
    FENCE_CLOSE_RE,
    FENCE_OPEN_RE,
    LIST_MARKER_RE,
    plain_text,
    rebase_images,
    render_document,
    render_markdown,
)
from .utils import as_bool, naive_utc

DOUBLE_QUOTE_RE = re.compile(r"^(?P<indent>[ \t]*)>>(?!>)(?P<rest>.*)$")
CJK_RE = re.compile(r"[\u3040-\u30ff\u3400-\u4dbf\u4e00-\u9fff\uac00-\ud7af]")
WORD_RE = re.compile(r"[A-Za-z0-9]+(?:'[A-Za-z0-9]+)?")
DATED_NAME_RE = re.compile(r"^(?P<date>\d{4}-\d{2}-\d{2})-(?P<rest>.+)$")
JEKYLL_DATE_RE = re.compile(
    r"^(?P<date>\d{4}-\d{2}-\d{2})[ T](?P<time>\d{1,2}:\d{2}(?::\d{2})?)\s*(?P<tz>[+-]\d{2}:?\d{2}|Z)?$"
)

# Opening marker -> (accepted closing markers, parser name)
DELIMITERS = {
    "---": ({"---", "..."}, "yaml"),
    "+++": ({"+++"}, "toml"),
}
RECOGNIZED_KEYS = ("layout", "title", "date", "categories", "tags", "header_image")
MORE_SEPARATOR = "<!--more-->"
SUMMARY_LENGTH = 200
NO_LAYOUT = {"", "none", "null", "false"}
DATE_FMT = "%Y-%m-%d"
DATETIME_FMT = "%Y-%m-%d %H:%M"


def slugify(text: str) -> str:
    text = text.lower()
    text = re.sub(r"[^\w]+", "-", text, flags=re.UNICODE)
    text = text.strip("-_").replace("_", "-")
    return text or "post"


def parse_list(value: object) -> list[str]:
    if value is None:
        return []
    if isinstance(value, (list, tuple, set)):
        items = [str(item).strip() for item in value]
        return [item for item in items if item]
    value = str(value).strip()
    if value.startswith("[") and value.endswith("]"):
        inner = value[1:-1]
        items = [item.strip().strip("'\"") for item in inner.split(",")]
    elif "," in value:
        items = [item.strip() for item in value.split(",")]
    else:
        # Jekyll treats a plain string as space separated.
        items = value.split()
    return [item for item in items if item]


def _load_block(block: str, kind: str, path: Optional[Path]) -> dict:
    try:
        if kind == "toml":
            data = toml.loads(block)
        else:
            data = yaml.safe_load(block)
    except (yaml.YAMLError, toml.TOMLDecodeError, ValueError, TypeError) as exc:
        # PyYAML builds dates while parsing, so "2024-13-45" fails with ValueError.
        raise MalformedFrontMatter(f"Invalid {kind.upper()} front matter: {exc}", path) from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise MalformedFrontMatter("Front matter must be a mapping", path)
    return {str(key).strip().lower(): value for key, value in data.items()}


def parse_front_matter(text: str, path: Optional[Path] = None) -> tuple[dict, str]:
    """Split raw file text into (metadata, body).

    Text without an opening delimiter on its first line is all body.
    An opening delimiter without a closing one raises MalformedFrontMatter.
    """
    clean_text = text.lstrip("\ufeff")
    lines = clean_text.split("\n")
    opener = lines[0].strip()
    if opener not in DELIMITERS:
        return {}, clean_text

    closers, kind = DELIMITERS[opener]
    end = None
    for i in range(1, len(lines)):
        if lines[i].strip() in closers:
            end = i
            break
    if end is None:
        raise MalformedFrontMatter(f"Missing closing {opener} delimiter", path)

    meta = _load_block("\n".join(lines[1:end]), kind, path)
    body = "\n".join(lines[end + 1 :])
    return meta, body


def dump_front_matter(meta: dict) -> str:
    if not meta:
        return "---\n---\n"
    block = yaml.safe_dump(meta, sort_keys=False, allow_unicode=True, default_flow_style=False)
    return f"---\n{block}---\n"


def extract_title(meta: dict, body: str) -> tuple[str, str]:
    if meta.get("title"):
        return str(meta["title"]), body
    lines = body.split("\n")
    for i, line in enumerate(lines):
        stripped = line.strip()
        if stripped.startswith("# "):
            title = stripped[2:].strip() or "Untitled"
            new_body = "\n".join(lines[i + 1 :]).lstrip()
            return title, new_body
        if stripped:
            break
    return "Untitled", body


def coerce_date(value: object) -> Optional[dt.datetime]:
    if isinstance(value, dt.datetime):
        return naive_utc(value)
    if isinstance(value, dt.date):
        return dt.datetime.combine(value, dt.time.min)
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    match = JEKYLL_DATE_RE.match(text)
    if match:
        # "2024-01-01 9:30:00 +0800" -> "2024-01-01T09:30:00+08:00"
        hour, rest = match.group("time").split(":", 1)
        tz = match.group("tz") or ""
        if tz == "Z":
            tz = "+00:00"
        elif tz and ":" not in tz:
            tz = f"{tz[:3]}:{tz[3:]}"
        text = f"{match.group('date')}T{int(hour):02d}:{rest}{tz}"
    try:
        return naive_utc(dt.datetime.fromisoformat(text))
    except ValueError:
        pass
    try:
        return dt.datetime.combine(dt.date.fromisoformat(text), dt.time.min)
    except ValueError:
        return None


def parse_date(meta: dict, file_path: Path) -> tuple[dt.datetime, bool]:
    """Return the post date and whether it carries a time of day."""
    value = meta.get("date")
    parsed = coerce_date(value)
    if parsed is not None:
        has_time = isinstance(value, dt.datetime) or (
            isinstance(value, str) and (":" in value)
        )
        return parsed, has_time
    match = DATED_NAME_RE.match(file_path.stem)
    if match:
        try:
            return dt.datetime.combine(dt.date.fromisoformat(match.group("date")), dt.time.min), False
        except ValueError:
            pass
    return dt.datetime.fromtimestamp(file_path.stat().st_mtime), True


def get_categories(meta: dict) -> list[str]:
    if meta.get("categories"):
        return parse_list(meta["categories"])
    if meta.get("category"):
        return [str(meta["category"]).strip()]
    return []


def layout_name(meta: dict, default: str) -> str:
    """Layout requested by front matter; "" means render without one."""
    if "layout" not in meta:
        return default
    value = meta["layout"]
    if value is None or value is False:
        return ""
    value = str(value).strip()
    if value.lower() in NO_LAYOUT:
        return ""
    return value


def get_tags(meta: dict) -> list[str]:
    return parse_list(meta.get("tags"))


def get_slug(meta: dict, file_path: Path) -> str:
    explicit = str(meta.get("slug") or "").strip()
    if explicit:
        return slugify(explicit)
    stem = file_path.stem
    match = DATED_NAME_RE.match(stem)
    if match:
        stem = match.group("rest")
    return slugify(stem)


def unique_slug(candidate: str, key: str, taken: set[str]) -> str:
    """Return candidate, or a variant suffixed with a hash of key if it is taken."""
    if candidate not in taken:
        return candidate
    slug = f"{candidate}-{hashlib.sha256(key.encode('utf-8')).hexdigest()[:8]}"
    counter = 2
    while slug in taken:
        slug = f"{candidate}-{counter}"
        counter += 1
    return slug


def is_draft(meta: dict) -> bool:
    if as_bool(meta.get("draft")):
        return True
    return "published" in meta and not as_bool(meta.get("published"))


def split_excerpt(body: str) -> Optional[str]:
    if MORE_SEPARATOR not in body:
        return None
    return body.split(MORE_SEPARATOR, 1)[0]


def summarize(text: str, length: int = SUMMARY_LENGTH) -> str:
    text = " ".join(text.split())
    return text[:length] + ("..." if len(text) > length else "")


def sort_posts(posts: list[dict]) -> list[dict]:
    """Newest first; posts sharing a date keep source-path order."""
    ordered = sorted(posts, key=lambda p: p["source"])
    ordered.sort(key=lambda p: p["date_dt"], reverse=True)
    return ordered


def normalize_list_spacing(text: str) -> str:
    lines = text.split("\n")
    out: list[str] = []
    fence = ""
    for line in lines:
        if fence:
            # Closing rule matches stash_fences().
            close = FENCE_CLOSE_RE.match(line)
            if close and close.group("fence")[0] == fence[0] and len(close.group("fence")) >= len(fence):
                fence = ""
            out.append(line)
            continue
        fence_match = FENCE_OPEN_RE.match(line)
        if fence_match and not (fence_match.group("fence")[0] == "`" and "`" in fence_match.group("info")):
            fence = fence_match.group("fence")
            out.append(line)
            continue
        quote_match = DOUBLE_QUOTE_RE.match(line)
        if quote_match:
            rest = quote_match.group("rest").lstrip()
            if rest:
                line = f'{quote_match.group("indent")}> {rest}'
            else:
                line = f'{quote_match.group("indent")}>'
        list_match = LIST_MARKER_RE.match(line)
        if list_match:
            if not list_match.group("indent"):
                if out and out[-1].strip() and not LIST_MARKER_RE.match(out[-1]):
                    out.append("")
        out.append(line)
    return "\n".join(out)


def count_words(text: str) -> int:
    text = html_lib.unescape(text)
    cjk_count = len(CJK_RE.findall(text))
    text = CJK_RE.sub(" ", text)
    word_count = len(WORD_RE.findall(text))
    return cjk_count + word_count


def load_post(
    path: Path,
    source: str,
    default_layout: str = "post",
    toc_depth: str = "",
    highlight: bool = False,
    img_root: str = "..",
) -> dict:
    """Read one content file into a post dict.

    Raises a ContentError (bad encoding or front matter); every other
    field falls back to a value derived from the file itself. Problems
    that do not stop the post are collected under ``warnings``.
    """
    try:
        raw_text = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise UnreadableContent(f"Not valid UTF-8 ({exc.reason} at byte {exc.start})", path) from exc
    meta, body = parse_front_matter(raw_text, path)
    title, body = extract_title(meta, body)
    date_dt, time_used = parse_date(meta, path)
    date_fmt = DATETIME_FMT if time_used else DATE_FMT
    warnings = []
    declared = meta.get("date")
    if declared not in (None, "") and coerce_date(declared) is None:
        warnings.append(InvalidDate(declared, date_dt.strftime(date_fmt), path))
    post = {
        "source": source,
        "path": path,
        "meta": meta,
        "draft": is_draft(meta),
        "title": title,
        "date": date_dt.strftime(date_fmt),
        "date_dt": date_dt,
        "categories": get_categories(meta),
        "tags": get_tags(meta),
        "header_image": str(meta.get("header_image") or "").strip(),
        "layout": layout_name(meta, default_layout),
        "slug": get_slug(meta, path),
        "warnings": warnings,
        "images": [],
    }
    if post["draft"]:
        return post

    body = normalize_list_spacing(body)
    html_content, toc_html = render_document(body, toc_depth=toc_depth, highlight=highlight)
    html_content, images = rebase_images(html_content, img_root)
    text = plain_text(html_content)

    summary = meta.get("excerpt") or meta.get("summary") or meta.get("description")
    if summary:
        summary = " ".join(str(summary).split())
    else:
        excerpt = split_excerpt(body)
        if excerpt is not None:
            summary = summarize(plain_text(render_markdown(excerpt)))
        else:
            summary = summarize(text)
    post.update(
        {
            "summary": summary,
            "content": html_content,
            "toc": toc_html,
            "words": count_words(text),
            "images": images,
        }
    )
    return post
