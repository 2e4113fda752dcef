"""Tests for the output tree and the feed documents."""

from __future__ import annotations

import threading
from pathlib import Path

import pytest

from mdpress.errors import SiteError
from mdpress.feeds import absolute_url, atom_document, rss_document, sitemap_document
from mdpress.output import OutputDir


def index_entry(slug: str, published: str, *categories: str) -> dict:
    return {
        "title": slug.title(),
        "date": published[:10],
        "published": published,
        "excerpt": f"About {slug} & more.",
        "url": f"posts/{slug}.html",
        "categories": [{"name": name, "slug": name.lower()} for name in categories],
        "tags": [],
    }


class TestOutputDir:
    def test_write_creates_parents(self, tmp_path: Path) -> None:
        output = OutputDir(tmp_path / "dist")
        path = output.write("posts/a.html", "<p>a</p>", "posts/a.md")
        assert path.read_text(encoding="utf-8") == "<p>a</p>"
        assert output.owners == {"posts/a.html": "posts/a.md"}

    def test_second_writer_is_refused(self, tmp_path: Path) -> None:
        output = OutputDir(tmp_path / "dist")
        output.write("index.html", "first", "index")
        with pytest.raises(SiteError) as excinfo:
            output.write("index.html", "second", "pages/index.md")
        assert "index" in str(excinfo.value) and "pages/index.md" in str(excinfo.value)
        assert (tmp_path / "dist" / "index.html").read_text(encoding="utf-8") == "first"

    def test_concurrent_writes_are_tracked(self, tmp_path: Path) -> None:
        output = OutputDir(tmp_path / "dist")
        threads = [
            threading.Thread(target=output.write, args=(f"posts/{n}.html", str(n), f"posts/{n}.md"))
            for n in range(20)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        assert len(output.owners) == 20

    def test_copy_static_mirrors_tree(self, tmp_path: Path) -> None:
        static = tmp_path / "static"
        (static / "css").mkdir(parents=True)
        (static / "css" / "site.css").write_text("body {}", encoding="utf-8")
        (static / "robots.txt").write_text("", encoding="utf-8")
        output = OutputDir(tmp_path / "dist")
        assert output.copy_static(static) == 2
        assert (tmp_path / "dist" / "css" / "site.css").read_text(encoding="utf-8") == "body {}"

    def test_clean_refuses_project_root(self, tmp_path: Path) -> None:
        with pytest.raises(SiteError):
            OutputDir(tmp_path).clean(tmp_path)

    def test_clean_refuses_outside_project(self, tmp_path: Path) -> None:
        outside = tmp_path / "elsewhere"
        outside.mkdir()
        project = tmp_path / "site"
        project.mkdir()
        with pytest.raises(SiteError):
            OutputDir(outside).clean(project)
        assert outside.exists()

    def test_clean_removes_previous_build(self, tmp_path: Path) -> None:
        (tmp_path / "dist" / "old").mkdir(parents=True)
        OutputDir(tmp_path / "dist").clean(tmp_path)
        assert not (tmp_path / "dist").exists()


class TestFeeds:
    def test_absolute_url(self) -> None:
        assert absolute_url("https://example.com/", "index.html") == "https://example.com/"
        assert absolute_url("https://example.com/blog", "posts/a.html") == "https://example.com/blog/posts/a.html"

    def test_rss_follows_index_order(self) -> None:
        index = [
            index_entry("second", "2024-02-01T09:30:00Z", "Swift"),
            index_entry("first", "2024-01-01T00:00:00Z"),
        ]
        rss = rss_document(index, "https://example.com", "Notes", "A & B")
        assert rss.index("posts/second.html") < rss.index("posts/first.html")
        assert "<pubDate>Thu, 01 Feb 2024 09:30:00 +0000</pubDate>" in rss
        assert "<lastBuildDate>Thu, 01 Feb 2024 09:30:00 +0000</lastBuildDate>" in rss
        assert "<category>Swift</category>" in rss
        assert "<description>A &amp; B</description>" in rss

    def test_empty_feeds(self) -> None:
        assert "<lastBuildDate>Thu, 01 Jan 1970 00:00:00 +0000</lastBuildDate>" in rss_document(
            [], "https://example.com", "Notes", ""
        )
        assert "<updated>1970-01-01T00:00:00Z</updated>" in atom_document([], "https://example.com", "Notes")

    def test_atom_entries(self) -> None:
        atom = atom_document([index_entry("a", "2024-03-01T00:00:00Z")], "https://example.com", "Notes")
        assert "<id>https://example.com/posts/a.html</id>" in atom
        assert "<updated>2024-03-01T00:00:00Z</updated>" in atom
        assert '<link href="https://example.com/atom.xml" rel="self" />' in atom
        assert "<summary>About a &amp; more.</summary>" in atom

    def test_sitemap_lists_written_html(self, tmp_path: Path) -> None:
        output = OutputDir(tmp_path)
        for rel in ("posts/a.html", "index.html", "404.html", "search-index.json", "about.html"):
            output.write(rel, "", rel)
        sitemap = sitemap_document(output, [index_entry("a", "2024-03-01T00:00:00Z")], "https://example.com")
        locs = [line for line in sitemap.split("\n") if line.startswith("<loc>")]
        assert locs == [
            "<loc>https://example.com/</loc>",
            "<loc>https://example.com/about.html</loc>",
            "<loc>https://example.com/posts/a.html</loc>",
        ]
        assert "<lastmod>2024-03-01</lastmod>" in sitemap
