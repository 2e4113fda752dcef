"""
Whole-site build: load content, check layouts, write every page.
"""
from __future__ import annotations

import datetime as dt
import os
import sys
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional

from .config import resolve_about_html, resolve_analytics
from .content import load_post, sort_posts, unique_slug
from .errors import ContentError, RenamedOutput, SiteError, SiteWarning, UnresolvedAsset
from .feeds import write_feeds
from .layouts import Layouts
from .output import OutputDir
from .pages import (
    Taxonomy,
    build_404,
    build_archive,
    build_index,
    build_pages,
    build_posts,
    build_search_index,
    build_terms,
    index_page_count,
    site_index,
)
from .utils import as_bool, is_external_url

CONTENT_SUFFIXES = {".md", ".markdown"}
MAX_WORKERS = 32
# Root-level names the build writes itself; pages may not take them.
GENERATED_PAGES = ("index", "archive", "404")

Loaded = tuple[Path, Optional[dict], Optional[ContentError]]


@dataclass
class BuildReport:
    posts: list[dict] = field(default_factory=list)
    pages: list[dict] = field(default_factory=list)
    index: list[dict] = field(default_factory=list)
    drafts: list[str] = field(default_factory=list)
    skipped: list[ContentError] = field(default_factory=list)
    warnings: list[SiteWarning] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.skipped

    def warn(self, warning: SiteWarning) -> None:
        print(f"Warning: {warning}", file=sys.stderr)
        self.warnings.append(warning)


def list_content(directory: Path) -> list[Path]:
    if not directory.exists():
        return []
    files = [path for path in directory.rglob("*") if path.is_file() and path.suffix.lower() in CONTENT_SUFFIXES]
    return sorted(files, key=lambda p: p.as_posix())


def resolve_dir(root: Path, value: object) -> Path:
    path = Path(str(value))
    return path if path.is_absolute() else root / path


def worker_count(args: object) -> int:
    workers = int(getattr(args, "build_workers", 0) or 0)
    if workers <= 0:
        workers = os.cpu_count() or 1
    return max(1, min(workers, MAX_WORKERS))


def asset_exists(asset: str, search: list[Path]) -> bool:
    rel = asset.split("?", 1)[0].split("#", 1)[0].lstrip("/")
    return any((base / rel).exists() for base in search)


def load_entries(
    files: list[Path],
    root: Path,
    default_layout: str,
    img_root: str,
    args: object,
    workers: int,
) -> list[Loaded]:
    toc_depth = str(getattr(args, "toc_depth", "") or "")
    highlight = as_bool(getattr(args, "highlight", False))

    def rel_key(path: Path) -> str:
        try:
            return path.relative_to(root).as_posix()
        except ValueError:
            return path.resolve().as_posix()

    def load(path: Path) -> Loaded:
        try:
            entry = load_post(path, rel_key(path), default_layout, toc_depth, highlight, img_root)
        except ContentError as exc:
            return path, None, exc
        return path, entry, None

    workers = min(workers, len(files)) if files else 1
    if workers > 1:
        with ThreadPoolExecutor(max_workers=workers) as executor:
            return list(executor.map(load, files))
    return [load(path) for path in files]


def collect_entries(loaded: list[Loaded], asset_search: list[Path], report: BuildReport) -> list[dict]:
    """Drop skipped files and drafts, reporting each one."""
    entries = []
    for path, entry, error in loaded:
        if error is not None:
            print(f"Skipping {path}: {error.message}", file=sys.stderr)
            report.skipped.append(error)
            continue
        if entry["draft"]:
            print(f"Skipping draft: {path}")
            report.drafts.append(entry["source"])
            continue
        for warning in entry["warnings"]:
            report.warn(warning)
        assets = [entry["header_image"]] if entry["header_image"] else []
        for asset in dict.fromkeys(assets + entry["images"]):
            if not is_external_url(asset) and not asset_exists(asset, asset_search):
                report.warn(UnresolvedAsset(asset, path))
        entries.append(entry)
    return entries


def assign_slugs(entries: list[dict], reserved: Iterable[str] = ()) -> list[RenamedOutput]:
    """Give every entry its own output name; later entries are renamed."""
    taken = set(reserved)
    renamed = []
    for entry in entries:
        wanted = entry["slug"]
        slug = unique_slug(wanted, entry["source"], taken)
        if slug != wanted:
            renamed.append(RenamedOutput(wanted, f"{slug}.html", entry["path"]))
        taken.add(slug)
        entry["slug"] = slug
    return renamed


def build_site(args: object) -> BuildReport:
    """Build the site described by args (an argparse namespace or similar).

    TemplateNotFound and other fatal SiteErrors propagate before any
    output is written. Unusable content files are skipped and recorded
    on the returned report.
    """
    project_root = Path(getattr(args, "root", ".") or ".")
    posts_dir = resolve_dir(project_root, args.posts)
    pages_dir = resolve_dir(project_root, args.pages)
    templates_dir = resolve_dir(project_root, args.templates)
    static_dir = resolve_dir(project_root, args.static)
    workers = worker_count(args)
    report = BuildReport()

    if not posts_dir.exists():
        raise SiteError("Posts directory not found", posts_dir)

    analytics_html = resolve_analytics(args)
    about_html = resolve_about_html(args)

    asset_search = [static_dir, project_root]
    posts = collect_entries(
        load_entries(list_content(posts_dir), project_root, args.post_layout, "..", args, workers), asset_search, report
    )
    pages = collect_entries(
        load_entries(list_content(pages_dir), project_root, args.page_layout, ".", args, workers), asset_search, report
    )

    posts = sort_posts(posts)
    per_page = max(1, int(getattr(args, "posts_per_page", 8)))
    index_names = [f"page-{n}" for n in range(2, index_page_count(len(posts), per_page) + 1)]
    for warning in assign_slugs(posts) + assign_slugs(pages, reserved=[*GENERATED_PAGES, *index_names]):
        report.warn(warning)

    layouts = Layouts(templates_dir if templates_dir.exists() else None)
    layouts.check(
        [entry["layout"] for entry in posts + pages] + [args.index_layout, args.list_layout]
    )

    output = OutputDir(resolve_dir(project_root, args.output))
    if as_bool(getattr(args, "clean", False)):
        output.clean(project_root)
    output.root.mkdir(parents=True, exist_ok=True)
    if static_dir.exists():
        output.copy_static(static_dir)

    custom_domain = (getattr(args, "custom_domain", "") or "").strip()
    if custom_domain:
        output.write("CNAME", f"{custom_domain}\n", "custom_domain")
    if as_bool(getattr(args, "write_nojekyll", False)):
        output.write(".nojekyll", "", "write_nojekyll")
    site_url = (getattr(args, "site_url", "") or "").strip()
    if not site_url and custom_domain:
        site_url = f"https://{custom_domain}"

    site = {
        "layouts": layouts,
        "output": output,
        "args": args,
        "categories": Taxonomy("categories", posts),
        "tags": Taxonomy("tags", posts),
        "analytics": analytics_html,
        "about_html": about_html,
        "year": str(dt.datetime.now().year),
    }
    report.index = site_index(site, posts)
    build_posts(site, posts, workers=workers)
    build_pages(site, pages)
    build_index(site, posts)
    build_terms(site, "categories")
    build_terms(site, "tags")
    build_archive(site, report.index)
    build_search_index(site, report.index)
    if as_bool(getattr(args, "enable_404", True)):
        build_404(site)
    write_feeds(site, report.index, site_url)

    report.posts = posts
    report.pages = pages
    return report
