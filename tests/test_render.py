"""Tests for Markdown rendering and template helpers."""

from __future__ import annotations

import html
import re

from mdpress.render import (
    plain_text,
    rebase_images,
    render_code_block,
    render_document,
    render_markdown,
    render_template,
    stash_fences,
)

CODE_RE = re.compile(r"<pre><code[^>]*>(.*?)</code></pre>", re.S)


def extract_code(html_text: str) -> list[str]:
    return [html.unescape(block) for block in CODE_RE.findall(html_text)]


class TestFencedCode:
    def test_content_survives_verbatim(self) -> None:
        code = "func f() {\n\tlet a = 1 < 2 && \"x\" != 'y'\n\n    return  \n}\n"
        body = f"Intro\n\n```swift\n{code}```\n\nAfter."
        rendered = render_markdown(body)
        assert extract_code(rendered) == [code]
        assert '<pre><code class="language-swift">' in rendered
        assert rendered.startswith("<p>Intro</p>")
        assert rendered.endswith("<p>After.</p>")

    def test_markdown_inside_fence_is_literal(self) -> None:
        code = "# not a heading\n**not bold** {{content}}\n"
        rendered = render_markdown(f"~~~\n{code}~~~")
        assert extract_code(rendered) == [code]
        assert "<h1>" not in rendered
        assert "<strong>" not in rendered

    def test_longer_fence_needs_longer_close(self) -> None:
        code = "```\ninner\n```\n"
        assert extract_code(render_markdown(f"````md\n{code}````")) == [code]

    def test_unclosed_fence_runs_to_end(self) -> None:
        assert extract_code(render_markdown("```\nline one\nline two")) == ["line one\nline two\n"]

    def test_indented_fence_is_dedented(self) -> None:
        assert extract_code(render_markdown("  ```\n  a\n    b\n  ```")) == ["a\n  b\n"]

    def test_inline_triple_backticks_are_not_a_fence(self) -> None:
        assert "<pre>" not in render_markdown("```a``` inline")

    def test_multiple_blocks_keep_order(self) -> None:
        rendered = render_markdown("```\none\n```\n\ntext\n\n```\ntwo\n```\n")
        assert extract_code(rendered) == ["one\n", "two\n"]

    def test_stash_leaves_prose_alone(self) -> None:
        text, blocks = stash_fences("para\n\n```py\nx = 1\n```\n")
        assert len(blocks) == 1
        (token, block), = blocks.items()
        assert token in text
        assert block.code == "x = 1\n"
        assert block.lang == "py"

    def test_fence_inside_list_item_keeps_the_list(self) -> None:
        rendered = render_markdown("- one\n\n  ```\n  code\n  ```\n\n- two")
        assert rendered.count("<ul>") == 1
        assert extract_code(rendered) == ["code\n"]
        assert rendered.index("one") < rendered.index("<pre>") < rendered.index("two")

    def test_indented_fence_after_list_paragraph_leaves_list(self) -> None:
        rendered = render_markdown("- one\n\nPara.\n\n  ```\n  code\n  ```")
        assert "<p>Para.</p>\n<pre><code>code\n</code></pre>" in rendered


class TestHighlight:
    def test_known_language_uses_pygments(self) -> None:
        rendered = render_markdown("```python\nprint(1)\n```", highlight=True)
        assert 'class="codehilite"' in rendered

    def test_unknown_language_falls_back(self) -> None:
        assert render_code_block("x < y\n", "nosuchlang", highlight=True) == (
            '<pre><code class="language-nosuchlang">x &lt; y\n</code></pre>'
        )

    def test_no_language_no_class(self) -> None:
        assert render_code_block("a\n") == "<pre><code>a\n</code></pre>"


class TestRenderMarkdown:
    def test_idempotent(self) -> None:
        body = "## Title\n\n- a\n- b\n\n```swift\nlet x = 1\n```\n\n| a | b |\n|---|---|\n| 1 | 2 |\n"
        assert render_markdown(body) == render_markdown(body)

    def test_tables(self) -> None:
        assert "<table>" in render_markdown("| a | b |\n|---|---|\n| 1 | 2 |")

    def test_links_and_emphasis(self) -> None:
        assert render_markdown("*a* [b](https://example.com)") == (
            '<p><em>a</em> <a href="https://example.com">b</a></p>'
        )

    def test_malformed_markdown_degrades(self) -> None:
        rendered = render_markdown("[unclosed link( **bold ]]")
        assert "unclosed link" in rendered

    def test_toc(self) -> None:
        rendered, toc = render_document("## Alpha\n\ntext\n\n## Beta\n", toc_depth="2-4")
        assert 'href="#alpha"' in toc
        assert 'href="#beta"' in toc
        assert '<h2 id="alpha">Alpha</h2>' in rendered

    def test_no_toc_by_default(self) -> None:
        assert render_document("## Alpha") == ("<h2>Alpha</h2>", "")

    def test_crlf_input(self) -> None:
        assert render_markdown("a\r\n\r\nb") == "<p>a</p>\n<p>b</p>"


class TestTemplates:
    def test_placeholders_filled(self) -> None:
        assert render_template("<t>{{ title }}</t>{{content}}", title="T", content="C") == "<t>T</t>C"

    def test_unknown_placeholders_kept(self) -> None:
        assert render_template("{{missing}}", title="T") == "{{missing}}"

    def test_values_are_not_expanded(self) -> None:
        assert render_template("{{content}}|{{title}}", content="{{title}}", title="T") == "{{title}}|T"

    def test_dotted_keys(self) -> None:
        assert render_template("{{page.author}}", **{"page.author": "someone"}) == "someone"


class TestHtmlHelpers:
    def test_rebase_images(self) -> None:
        text = '<img alt="a" src="img/a.png"><img src="https://x/b.png"><img src="/c.png"><img src="./d.png">'
        rebased, local = rebase_images(text, "..")
        assert rebased == (
            '<img alt="a" src="../img/a.png"><img src="https://x/b.png"><img src="/c.png"><img src="./d.png">'
        )
        assert local == ["img/a.png", "/c.png"]

    def test_rebase_ignores_other_attributes(self) -> None:
        text = '<img data-src="x.png" src="y.png">'
        assert rebase_images(text, ".") == ('<img data-src="x.png" src="./y.png">', ["y.png"])

    def test_plain_text(self) -> None:
        assert plain_text("<p>a <b>b</b> &amp; c</p>") == "a b & c"
