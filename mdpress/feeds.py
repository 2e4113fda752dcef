"""
RSS, Atom and sitemap documents.

Feeds are read from the Site Index, so they list exactly what the index
pages list and in the same order. The sitemap covers every HTML file the
build wrote. All three need an absolute site URL.
"""
from __future__ import annotations

import datetime as dt
from email.utils import format_datetime
from html import escape
from typing import Optional

from .output import OutputDir
from .utils import as_bool

EPOCH = "1970-01-01T00:00:00Z"
SITEMAP_EXCLUDE = {"404.html"}


def absolute_url(site_url: str, rel: str) -> str:
    base = site_url.rstrip("/")
    rel = "" if rel == "index.html" else rel.lstrip("/")
    return f"{base}/{rel}"


def published(entry: Optional[dict]) -> dt.datetime:
    stamp = entry["published"] if entry else EPOCH
    return dt.datetime.fromisoformat(stamp.replace("Z", "+00:00"))


def rss_document(index: list[dict], site_url: str, title: str, description: str) -> str:
    items = []
    for entry in index:
        link = absolute_url(site_url, entry["url"])
        categories = "".join(f"<category>{escape(term['name'])}</category>" for term in entry["categories"])
        items.append(
            f"<item>\n<title>{escape(entry['title'])}</title>\n<link>{link}</link>\n<guid>{link}</guid>\n"
            f"<pubDate>{format_datetime(published(entry))}</pubDate>\n"
            f"<description>{escape(entry['excerpt'])}</description>\n{categories}\n</item>"
        )
    newest = published(index[0] if index else None)
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n<rss version="2.0">\n<channel>\n'
        f"<title>{escape(title)}</title>\n<link>{absolute_url(site_url, 'index.html')}</link>\n"
        f"<description>{escape(description)}</description>\n"
        f"<lastBuildDate>{format_datetime(newest)}</lastBuildDate>\n"
        + "\n".join(items)
        + "\n</channel>\n</rss>"
    )


def atom_document(index: list[dict], site_url: str, title: str) -> str:
    home = absolute_url(site_url, "index.html")
    entries = [
        f"<entry>\n<title>{escape(entry['title'])}</title>\n"
        f'<link href="{absolute_url(site_url, entry["url"])}" />\n'
        f"<id>{absolute_url(site_url, entry['url'])}</id>\n"
        f"<updated>{entry['published']}</updated>\n"
        f"<summary>{escape(entry['excerpt'])}</summary>\n</entry>"
        for entry in index
    ]
    updated = index[0]["published"] if index else EPOCH
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n<feed xmlns="http://www.w3.org/2005/Atom">\n'
        f"<title>{escape(title)}</title>\n<id>{home}</id>\n<updated>{updated}</updated>\n"
        f'<link href="{absolute_url(site_url, "atom.xml")}" rel="self" />\n<link href="{home}" />\n'
        + "\n".join(entries)
        + "\n</feed>"
    )


def sitemap_document(output: OutputDir, index: list[dict], site_url: str) -> str:
    lastmod = {entry["url"]: entry["published"][:10] for entry in index}
    urls = []
    for rel in sorted(output.owners, key=lambda rel: (rel != "index.html", rel)):
        if not rel.endswith(".html") or rel in SITEMAP_EXCLUDE:
            continue
        url = f"<url>\n<loc>{absolute_url(site_url, rel)}</loc>\n"
        if rel in lastmod:
            url += f"<lastmod>{lastmod[rel]}</lastmod>\n"
        urls.append(url + "</url>")
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">\n'
        + "\n".join(urls)
        + "\n</urlset>"
    )


def write_feeds(site: dict, index: list[dict], site_url: str) -> None:
    """Write whichever of rss.xml, atom.xml and sitemap.xml are enabled.

    Call after every page is written; the sitemap lists what exists.
    """
    if not site_url:
        return
    args = site["args"]
    output = site["output"]
    recent = index[: max(0, int(getattr(args, "feed_limit", 20)))]
    if as_bool(getattr(args, "enable_rss", True)):
        output.write("rss.xml", rss_document(recent, site_url, args.site_name, args.site_description), "rss")
    if as_bool(getattr(args, "enable_atom", True)):
        output.write("atom.xml", atom_document(recent, site_url, args.site_name), "atom")
    if as_bool(getattr(args, "enable_sitemap", True)):
        output.write("sitemap.xml", sitemap_document(output, index, site_url), "sitemap")
