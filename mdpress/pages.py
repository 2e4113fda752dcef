from __future__ import annotations

import html
import json
import math
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from itertools import groupby

from .content import slugify, unique_slug
from .utils import is_external_url

TERM_LABELS = {"categories": ("Categories", "category"), "tags": ("Tags", "tag")}


class Taxonomy:
    """Posts grouped by category or tag, one listing page per term.

    Names differing only in case share a listing. Distinct names that
    slugify alike ("C++" and "C") get distinct slugs.
    """

    def __init__(self, kind: str, posts: list[dict]):
        self.kind = kind
        self.terms: dict[str, dict] = {}
        taken: set[str] = set()
        for post in posts:
            for name in post[kind]:
                key = name.casefold()
                term = self.terms.get(key)
                if term is None:
                    slug = unique_slug(slugify(name), key, taken)
                    taken.add(slug)
                    term = self.terms[key] = {"name": name, "slug": slug, "posts": []}
                if not term["posts"] or term["posts"][-1] is not post:
                    term["posts"].append(post)

    def __bool__(self) -> bool:
        return bool(self.terms)

    def slug(self, name: str) -> str:
        term = self.terms.get(name.casefold())
        return term["slug"] if term else slugify(name)

    def path(self, name: str) -> str:
        return f"{self.kind}/{self.slug(name)}.html"

    def sorted_terms(self) -> list[dict]:
        return sorted(self.terms.values(), key=lambda term: term["name"].casefold())

    def links(self, names: list[str], root: str) -> str:
        return " ".join(
            f'<a class="chip" href="{root}/{self.path(name)}">{html.escape(name)}</a>' for name in names
        )

    def term_list(self, root: str) -> str:
        terms = sorted(self.terms.values(), key=lambda term: (-len(term["posts"]), term["name"].casefold()))
        if not terms:
            return f"<li>No {self.kind} yet.</li>"
        return "\n".join(
            f'<li><a href="{root}/{self.kind}/{term["slug"]}.html">{html.escape(term["name"])}</a>'
            f'<span class="count">{len(term["posts"])}</span></li>'
            for term in terms
        )


def build_sidebar(site: dict, root: str, toc_html: str = "") -> str:
    panels = [("About", site["about_html"])]
    if toc_html and "<li" in toc_html:
        panels.append(("Contents", toc_html))
    for kind in ("categories", "tags"):
        taxonomy = site[kind]
        if taxonomy or kind == "categories":
            panels.append((TERM_LABELS[kind][0], f'<ul class="category-list">{taxonomy.term_list(root)}</ul>'))
    return "".join(f'<div class="panel"><h3>{heading}</h3>{body}</div>' for heading, body in panels)


def build_post_cards(site: dict, posts: list[dict], root: str) -> str:
    cards = []
    for position, post in enumerate(posts):
        url = f"{root}/posts/{post['slug']}.html"
        cards.append(
            f'<article class="post-card" style="animation-delay: {min(position * 0.05, 0.3):.2f}s">'
            '<div class="post-meta"><div class="post-meta-left">'
            f'<span class="post-date">{post["date"]}</span>'
            f'<span class="post-words">{post.get("words", 0)} words</span>'
            "</div>"
            f'<div class="post-tags">{site["categories"].links(post["categories"], root)}</div></div>'
            f'<h2 class="post-title"><a href="{url}">{html.escape(post["title"])}</a></h2>'
            f'<p class="post-summary">{html.escape(post["summary"])}</p>'
            f'<a class="post-more" href="{url}">Read more</a>'
            "</article>"
        )
    return "\n".join(cards)


def header_image_url(value: str, root: str) -> str:
    if not value or is_external_url(value):
        return value
    return f"{root}/{value.lstrip('/')}"


def meta_context(meta: dict) -> dict:
    """Expose front matter as ``{{page.<key>}}`` placeholders."""
    context = {}
    for key, value in meta.items():
        if isinstance(value, (list, tuple)):
            value = ", ".join(str(item) for item in value)
        elif isinstance(value, dict):
            continue
        context[f"page.{key}"] = html.escape("" if value is None else str(value))
    return context


def render_page(
    site: dict,
    layout: str,
    root: str,
    title: str,
    content: str,
    toc_html: str = "",
    extra_head: str = "",
    **extra: str,
) -> str:
    args = site["args"]
    context = {
        "title": html.escape(f"{title} | {args.site_name}" if title else args.site_name),
        "page_title": html.escape(title),
        "root": root,
        "sidebar": build_sidebar(site, root, toc_html),
        "site_name": html.escape(args.site_name),
        "site_description": html.escape(args.site_description),
        "year": site["year"],
        "extra_head": extra_head,
        "analytics": site["analytics"],
    }
    context.update(extra)
    return site["layouts"].render(layout, content, **context)


def entry_context(site: dict, entry: dict, root: str) -> dict:
    image = header_image_url(entry["header_image"], root)
    image_html = ""
    if image:
        image_html = f'<img class="header-image" src="{html.escape(image)}" alt="{html.escape(entry["title"])}">'
    context = meta_context(entry["meta"])
    context.update(
        {
            "date": entry["date"],
            "words": str(entry.get("words", 0)),
            "summary": html.escape(entry["summary"]),
            "category_links": site["categories"].links(entry["categories"], root),
            "tag_links": site["tags"].links(entry["tags"], root),
            "header_image": html.escape(image),
            "header_image_html": image_html,
        }
    )
    return context


def write_entry(site: dict, entry: dict, rel: str, root: str) -> None:
    html_doc = render_page(
        site,
        entry["layout"],
        root,
        entry["title"],
        entry["content"],
        toc_html=entry.get("toc", ""),
        **entry_context(site, entry, root),
    )
    site["output"].write(rel, html_doc, entry["source"])


def build_posts(site: dict, posts: list[dict], workers: int = 1) -> None:
    def render_post(post: dict) -> None:
        write_entry(site, post, f"posts/{post['slug']}.html", "..")

    workers = min(max(1, int(workers or 1)), len(posts) or 1)
    if workers == 1:
        for post in posts:
            render_post(post)
        return
    with ThreadPoolExecutor(max_workers=workers) as executor:
        list(executor.map(render_post, posts))


def build_pages(site: dict, pages: list[dict]) -> None:
    for page in pages:
        write_entry(site, page, f"{page['slug']}.html", ".")


def index_page_url(number: int) -> str:
    return "index.html" if number == 1 else f"page-{number}.html"


def index_page_count(post_count: int, per_page: int) -> int:
    return max(1, math.ceil(post_count / max(1, per_page)))


def _page_link(number: int, label: str, current: int, total: int) -> str:
    if number == current:
        return f'<span class="page-link is-active">{label}</span>'
    if not 1 <= number <= total:
        return f'<span class="page-link is-disabled">{label}</span>'
    return f'<a class="page-link" href="./{index_page_url(number)}">{label}</a>'


def build_pagination(current: int, total: int) -> str:
    if total <= 1:
        return ""
    links = [_page_link(current - 1, "Previous", current, total)]
    links.extend(_page_link(number, str(number), current, total) for number in range(1, total + 1))
    links.append(_page_link(current + 1, "Next", current, total))
    return f'<nav class="pagination">{"".join(links)}</nav>'


def build_index(site: dict, posts: list[dict]) -> int:
    """Write the paginated home listing; posts must already be sorted."""
    args = site["args"]
    per_page = max(1, int(getattr(args, "posts_per_page", 8)))
    total = index_page_count(len(posts), per_page)
    for number in range(1, total + 1):
        chunk = posts[(number - 1) * per_page : number * per_page]
        html_doc = render_page(
            site,
            args.index_layout,
            ".",
            "Home" if number == 1 else f"Page {number}",
            build_post_cards(site, chunk, "."),
            heading="Latest posts",
            pagination=build_pagination(number, total),
        )
        site["output"].write(index_page_url(number), html_doc, "index")
    return total


def build_terms(site: dict, kind: str) -> None:
    taxonomy = site[kind]
    label = TERM_LABELS[kind][1]
    for term in taxonomy.sorted_terms():
        html_doc = render_page(
            site,
            site["args"].list_layout,
            "..",
            term["name"],
            f'<div class="post-grid">{build_post_cards(site, term["posts"], "..")}</div>',
            heading=html.escape(term["name"]),
            subheading=f"Posts with this {label}.",
        )
        site["output"].write(f"{kind}/{term['slug']}.html", html_doc, f"{label} {term['name']}")


def build_archive(site: dict, index: list[dict]) -> None:
    """Archive grouped by month, read from the (already sorted) Site Index."""
    sections = []
    for month, entries in groupby(index, key=lambda entry: entry["published"][:7]):
        rows = "".join(
            f'<li><span class="archive-date">{entry["date"]}</span>'
            f'<a href="./{entry["url"]}">{html.escape(entry["title"])}</a></li>'
            for entry in entries
        )
        sections.append(f'<section class="archive-group"><h3>{month}</h3><ul class="archive-list">{rows}</ul></section>')

    stats = ""
    if index:
        per_year = Counter(entry["published"][:4] for entry in index)
        years = "".join(
            f'<li><span class="archive-year">{year}</span><span class="archive-count">{count}</span></li>'
            for year, count in sorted(per_year.items(), reverse=True)
        )
        stats = (
            f'<div class="archive-stats"><div class="archive-total">Total {len(index)} posts</div>'
            f'<ul class="archive-year-list">{years}</ul></div>'
        )
    else:
        sections.append('<p class="archive-empty">No posts yet.</p>')

    html_doc = render_page(
        site,
        site["args"].list_layout,
        ".",
        "Archive",
        f'{stats}<div class="archive-view">{"".join(sections)}</div>',
        heading="Archive",
        subheading="All posts by date.",
    )
    site["output"].write("archive.html", html_doc, "archive")


def site_index(site: dict, posts: list[dict]) -> list[dict]:
    """Summaries of sorted posts, newest first."""
    return [
        {
            "title": post["title"],
            "date": post["date"],
            "published": post["date_dt"].strftime("%Y-%m-%dT%H:%M:%SZ"),
            "excerpt": post["summary"],
            "url": f"posts/{post['slug']}.html",
            "categories": [{"name": name, "slug": site["categories"].slug(name)} for name in post["categories"]],
            "tags": [{"name": name, "slug": site["tags"].slug(name)} for name in post["tags"]],
        }
        for post in posts
    ]


def build_search_index(site: dict, index: list[dict]) -> None:
    site["output"].write("search-index.json", json.dumps(index, indent=2, ensure_ascii=True), "search index")


def build_404(site: dict) -> None:
    html_doc = render_page(
        site,
        site["args"].list_layout,
        ".",
        "404",
        '<div class="post-card"><p class="post-summary">The page you requested does not exist.</p>'
        '<a class="post-more" href="./index.html">Back to home</a></div>',
        heading="404",
        subheading="Page not found. Try heading back to the homepage.",
    )
    site["output"].write("404.html", html_doc, "404 page")
