from __future__ import annotations

import argparse
import sys
import time
from pathlib import Path
from typing import Optional, Sequence

from . import __version__
from .builder import build_site
from .config import find_config, load_config
from .errors import SiteError
from .utils import as_bool, as_int

FEED_LIMIT = 20


def build_parser(config: dict, config_path: str) -> argparse.ArgumentParser:
    def cfg_value(key: str, default: object) -> object:
        value = config.get(key)
        return default if value is None else value

    def cfg_str(key: str, default: str) -> str:
        return str(cfg_value(key, default))

    def cfg_bool(key: str, default: bool) -> bool:
        return as_bool(cfg_value(key, default))

    def cfg_int(key: str, default: int) -> int:
        return as_int(cfg_value(key, default), default)

    parser = argparse.ArgumentParser(prog="mdpress", description="Build a static blog from Markdown posts.")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--config", default=config_path, help="Path to site config file (TOML/YAML/JSON).")
    parser.add_argument("--root", default=cfg_str("root", "."), help="Site root; other paths are relative to it.")
    parser.add_argument("--posts", default=cfg_str("posts", "posts"), help="Directory containing Markdown posts.")
    parser.add_argument("--pages", default=cfg_str("pages", "pages"), help="Directory containing standalone pages.")
    parser.add_argument("--templates", default=cfg_str("templates", "templates"), help="Directory of layouts.")
    parser.add_argument("--static", default=cfg_str("static", "static"), help="Directory containing static assets.")
    parser.add_argument("--output", default=cfg_str("output", "dist"), help="Output directory for the site.")
    parser.add_argument("--site-name", default=cfg_str("site_name", "mdpress"), help="Site title.")
    parser.add_argument(
        "--site-description",
        default=cfg_str("site_description", "Notes written in Markdown."),
        help="Site description.",
    )
    parser.add_argument("--site-url", default=cfg_str("site_url", ""), help="Public site URL for feeds and sitemap.")
    parser.add_argument("--custom-domain", default=cfg_str("custom_domain", ""), help="Domain to write into CNAME.")
    parser.add_argument(
        "--clean",
        action=argparse.BooleanOptionalAction,
        default=cfg_bool("clean", True),
        help="Clean output directory before build.",
    )
    parser.add_argument(
        "--strict",
        action=argparse.BooleanOptionalAction,
        default=cfg_bool("strict", False),
        help="Fail the build when any file is skipped.",
    )
    parser.add_argument(
        "--posts-per-page",
        default=cfg_int("posts_per_page", 8),
        type=int,
        help="Number of posts on each index page.",
    )
    parser.add_argument(
        "--feed-limit",
        default=cfg_int("feed_limit", FEED_LIMIT),
        type=int,
        help="Maximum number of posts in RSS/Atom feeds.",
    )
    parser.add_argument(
        "--build-workers",
        default=cfg_int("build_workers", 0),
        type=int,
        help="Number of worker threads for parsing/rendering (0 = auto).",
    )
    parser.add_argument("--toc-depth", default=cfg_str("toc_depth", "2-4"), help="Heading range for the TOC.")
    parser.add_argument(
        "--highlight",
        action=argparse.BooleanOptionalAction,
        default=cfg_bool("highlight", False),
        help="Highlight fenced code with Pygments using the language hint.",
    )
    parser.add_argument("--post-layout", default=cfg_str("post_layout", "post"), help="Default layout for posts.")
    parser.add_argument("--page-layout", default=cfg_str("page_layout", "page"), help="Default layout for pages.")
    parser.add_argument("--index-layout", default=cfg_str("index_layout", "index"), help="Layout for index pages.")
    parser.add_argument("--list-layout", default=cfg_str("list_layout", "list"), help="Layout for listing pages.")
    for name, help_text in (
        ("rss", "Generate rss.xml."),
        ("atom", "Generate atom.xml."),
        ("sitemap", "Generate sitemap.xml."),
        ("404", "Generate 404.html."),
    ):
        parser.add_argument(
            f"--enable-{name}",
            dest=f"enable_{name}",
            action=argparse.BooleanOptionalAction,
            default=cfg_bool(f"enable_{name}", True),
            help=help_text,
        )
    parser.add_argument(
        "--write-nojekyll",
        action=argparse.BooleanOptionalAction,
        default=cfg_bool("write_nojekyll", True),
        help="Write .nojekyll in the output directory.",
    )
    parser.add_argument("--analytics-file", default=cfg_str("analytics_file", ""), help="Analytics HTML snippet file.")
    parser.add_argument("--analytics-html", default=cfg_str("analytics_html", ""), help="Inline analytics snippet.")
    parser.add_argument("--about-text", default=cfg_str("about_text", ""), help="Text for the sidebar About panel.")
    parser.add_argument("--about-html", default=cfg_str("about_html", ""), help="HTML for the sidebar About panel.")
    parser.add_argument("--about-file", default=cfg_str("about_file", ""), help="File for the sidebar About panel.")
    return parser


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parse options, taking defaults from the config file named by --config."""
    pre_parser = argparse.ArgumentParser(add_help=False)
    pre_parser.add_argument("--config", default=None)
    pre_args, _ = pre_parser.parse_known_args(argv)
    config_path = pre_args.config or str(find_config(Path.cwd()))
    config = load_config(Path(config_path))
    return build_parser(config, config_path).parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> None:
    try:
        args = parse_args(argv)
    except SiteError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(exc.exit_code)

    start = time.perf_counter()
    try:
        report = build_site(args)
    except SiteError as exc:
        print(f"Build failed: {exc}", file=sys.stderr)
        sys.exit(exc.exit_code)
    elapsed = time.perf_counter() - start

    print(f"Build completed in {elapsed:.2f}s: {len(report.posts)} posts, {len(report.pages)} pages.")
    if report.warnings:
        print(f"{len(report.warnings)} warning(s).", file=sys.stderr)
    if report.skipped:
        print(f"{len(report.skipped)} file(s) skipped.", file=sys.stderr)
        if args.strict:
            sys.exit(report.skipped[0].exit_code)
    print(f"Site generated in: {args.output}")
