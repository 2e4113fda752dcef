from __future__ import annotations

import hashlib
import html
import re
from typing import Optional

import markdown
from pygments import highlight as pygments_highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import get_lexer_by_name
from pygments.util import ClassNotFound

from .utils import is_external_url

IMG_SRC_RE = re.compile(r'(<img\b[^>]*?\ssrc=")([^"]+)(")', re.IGNORECASE)
TAG_RE = re.compile(r"<[^>]+>")
PLACEHOLDER_RE = re.compile(r"\{\{\s*([A-Za-z_][\w.]*)\s*\}\}")
FENCE_OPEN_RE = re.compile(r"^(?P<indent> {0,3})(?P<fence>`{3,}|~{3,})(?P<info>.*)$")
FENCE_CLOSE_RE = re.compile(r"^ {0,3}(?P<fence>`{3,}|~{3,})[ \t]*$")
LIST_MARKER_RE = re.compile(r"^(?P<indent>[ \t]*)(?:[-+*]|\d+[.)])\s+")
MARKDOWN_EXTENSIONS = ["tables"]
# Python-Markdown continues a list item only with a full tab stop of indent.
LIST_CONTINUATION = " " * 4
PAGE_RELATIVE = ("#", "/", "./", "../")


class FencedBlock:
    __slots__ = ("code", "lang")

    def __init__(self, code: str, lang: str):
        self.code = code
        self.lang = lang


def _fence_lang(info: str) -> str:
    info = info.strip()
    if not info:
        return ""
    # ```swift title="x"  and  ``` {.swift}
    return info.split()[0].lstrip("{").lstrip(".").rstrip("}")


def _dedent(line: str, indent: int) -> str:
    strip = len(line) - len(line.lstrip(" "))
    return line[min(strip, indent) :]


def stash_fences(text: str) -> tuple[str, dict[str, FencedBlock]]:
    """Replace fenced code blocks with placeholder paragraphs.

    The blocks are kept aside untouched so that nothing in the Markdown
    pipeline (tab expansion, whitespace cleanup) can reach their content.
    A fence without a closing marker runs to the end of the text. An
    indented fence that follows a list item keeps its place in that item.
    """
    digest = hashlib.sha1(text.encode("utf-8")).hexdigest()[:10]
    lines = text.split("\n")
    out: list[str] = []
    blocks: dict[str, FencedBlock] = {}
    in_list = False
    i = 0
    while i < len(lines):
        line = lines[i]
        match = FENCE_OPEN_RE.match(line)
        if not match or (match.group("fence")[0] == "`" and "`" in match.group("info")):
            if LIST_MARKER_RE.match(line):
                in_list = True
            elif line.strip() and not line[0].isspace():
                in_list = False
            out.append(line)
            i += 1
            continue
        fence = match.group("fence")
        indent = len(match.group("indent"))
        body: list[str] = []
        i += 1
        while i < len(lines):
            close = FENCE_CLOSE_RE.match(lines[i])
            if close and close.group("fence")[0] == fence[0] and len(close.group("fence")) >= len(fence):
                i += 1
                break
            body.append(_dedent(lines[i], indent))
            i += 1
        code = "\n".join(body) + "\n" if body else ""
        token = f"mdpressfence{len(blocks)}x{digest}"
        blocks[token] = FencedBlock(code, _fence_lang(match.group("info")))
        if indent and in_list:
            token = LIST_CONTINUATION + token
        else:
            in_list = False
        out.extend(["", token, ""])
    return "\n".join(out), blocks


def render_code_block(code: str, lang: str = "", highlight: bool = False) -> str:
    if highlight and lang:
        try:
            lexer = get_lexer_by_name(lang)
        except ClassNotFound:
            lexer = None
        if lexer is not None:
            formatter = HtmlFormatter(cssclass="codehilite")
            return pygments_highlight(code, lexer, formatter)
    class_attr = f' class="language-{html.escape(lang)}"' if lang else ""
    return f"<pre><code{class_attr}>{html.escape(code)}</code></pre>"


def restore_fences(html_text: str, blocks: dict[str, FencedBlock], highlight: bool = False) -> str:
    for token, block in blocks.items():
        rendered = render_code_block(block.code, block.lang, highlight)
        html_text = html_text.replace(f"<p>{token}</p>", rendered)
        html_text = html_text.replace(token, rendered)
    return html_text


def render_document(text: str, toc_depth: Optional[str] = None, highlight: bool = False) -> tuple[str, str]:
    """Render Markdown to HTML and return it with the table of contents.

    The TOC is empty unless toc_depth (e.g. "2-4") is given.
    """
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text, blocks = stash_fences(text)
    extensions = list(MARKDOWN_EXTENSIONS)
    extension_configs = {}
    if toc_depth:
        extensions.append("toc")
        extension_configs["toc"] = {"toc_depth": toc_depth}
    md = markdown.Markdown(extensions=extensions, extension_configs=extension_configs)
    html_content = md.convert(text)
    toc_html = getattr(md, "toc", "") if toc_depth else ""
    md.reset()
    return restore_fences(html_content, blocks, highlight), toc_html


def render_markdown(text: str, highlight: bool = False) -> str:
    html_content, _ = render_document(text, highlight=highlight)
    return html_content


def rebase_images(html_text: str, root: str) -> tuple[str, list[str]]:
    """Point site-relative ``<img src>`` values at ``root``.

    Returns the rewritten HTML and the local image paths it refers to,
    so callers can check that each one exists.
    """
    local: list[str] = []

    def repl(match: re.Match) -> str:
        src = match.group(2)
        if is_external_url(src):
            return match.group(0)
        if src.startswith(PAGE_RELATIVE):
            if src.startswith("/"):
                local.append(src)
            return match.group(0)
        local.append(src)
        return f"{match.group(1)}{root}/{src}{match.group(3)}"

    return IMG_SRC_RE.sub(repl, html_text), local


def plain_text(html_text: str) -> str:
    """Visible text of rendered HTML, entities decoded."""
    return html.unescape(TAG_RE.sub("", html_text))


def render_template(template: str, **context: str) -> str:
    """Fill ``{{ key }}`` placeholders; unknown keys are left in place.

    Substitution is a single pass over the template, so placeholder-like
    text inside the inserted values is never expanded.
    """

    def repl(match: re.Match) -> str:
        key = match.group(1)
        if key in context:
            return context[key]
        return match.group(0)

    return PLACEHOLDER_RE.sub(repl, template)
