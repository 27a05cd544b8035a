# Copyright: Ankitects Pty Ltd and contributors
# License: GNU AGPL, version 3 or later; http://www.gnu.org/licenses/agpl.html

"""Render card Markdown to the HTML stored in exported notes."""

from __future__ import annotations

import html
import re

CARD_CSS = """\
.card-content { font-family: -apple-system, "Segoe UI", Roboto, "Helvetica Neue", Arial, sans-serif; font-size: 20px; line-height: 1.5; color: #1f2328; text-align: left; }
.card-content img { max-width: 100%; height: auto; display: block; margin: 0 auto 0.5em; }
.card-content code { font-family: Menlo, Consolas, monospace; background: #f3f4f6; padding: 0.1em 0.3em; border-radius: 4px; }
.card-content pre { background: #f3f4f6; padding: 0.6em; border-radius: 6px; overflow-x: auto; }
.card-content ul, .card-content ol { padding-left: 1.4em; }
.card-content blockquote { border-left: 3px solid #d0d7de; margin: 0; padding-left: 0.8em; color: #57606a; }
.nightMode .card-content, .night_mode .card-content { color: #e6edf3; }
.nightMode .card-content code, .nightMode .card-content pre { background: #2d333b; }
"""

STYLE_BLOCK = f"<style>\n{CARD_CSS}</style>"

MD_IMAGE = re.compile(r"!\[([^\]]*)\]\(\s*([^)\s]+)(?:\s+\"[^\"]*\")?\s*\)")
MD_LINK = re.compile(r"\[([^\]]+)\]\(\s*([^)\s]+)\s*\)")
FENCED_CODE = re.compile(r"```[\w+-]*\n?(.*?)```", re.DOTALL)
INLINE_CODE = re.compile(r"`([^`\n]+)`")
# Emphasis markers must hug their text; "_" never opens or closes inside a word
BOLD = re.compile(
    r"\*\*(?![\s*])([^*\n]*?[^\s*])\*\*"
    r"|(?<![\w_])__(?![\s_])([^_\n]*?[^\s_])__(?![\w_])"
)
ITALIC = re.compile(r"(?<!\*)\*(?![\s*])([^*\n]*?[^\s*])\*(?!\*)")
HEADING = re.compile(r"^(#{1,6})\s+(.+?)\s*#*$")
BLOCKQUOTE = re.compile(r"^&gt;\s?(.*)$")
UL_ITEM = re.compile(r"^[-*+]\s+(.+)$")
OL_ITEM = re.compile(r"^\d+[.)]\s+(.+)$")


def image_sources(markdown: str) -> list[str]:
    """URLs of all Markdown images in text."""
    return [m.group(2) for m in MD_IMAGE.finditer(markdown or "")]


def _attr(value: str) -> str:
    # &, < and > were escaped with the rest of the text
    return value.replace('"', "&quot;")


def _inline(text: str) -> str:
    text = MD_IMAGE.sub(
        lambda m: f'<img src="{_attr(m.group(2))}" alt="{_attr(m.group(1))}">', text
    )
    text = MD_LINK.sub(
        lambda m: f'<a href="{_attr(m.group(2))}">{m.group(1)}</a>', text
    )
    text = BOLD.sub(lambda m: f"<b>{m.group(1) or m.group(2)}</b>", text)
    text = ITALIC.sub(r"<i>\1</i>", text)
    return text


def markdown_to_html(markdown: str) -> str:
    """
    Convert the Markdown subset used on cards to HTML.

    Handles fenced and inline code, images, links, bold, italic, headings,
    blockquotes and lists. Soft line breaks become <br>, blank lines start
    a new paragraph.
    """
    if not markdown:
        return ""

    text = markdown.replace("\r\n", "\n").replace("\r", "\n")
    text = html.escape(text, quote=False)

    # Code is set aside so emphasis and lists don't touch it
    protected: list[str] = []

    def protect(fragment: str) -> str:
        protected.append(fragment)
        return f"\x00{len(protected) - 1}\x00"

    def fenced(match: re.Match) -> str:
        code = match.group(1).rstrip("\n").replace("\n", "<br>")
        return protect(f"<pre><code>{code}</code></pre>")

    text = FENCED_CODE.sub(fenced, text)
    text = INLINE_CODE.sub(lambda m: protect(f"<code>{m.group(1)}</code>"), text)

    blocks: list[list[str]] = [[]]
    list_tag = None
    for line in text.split("\n"):
        stripped = line.strip()
        ul = UL_ITEM.match(stripped)
        ol = OL_ITEM.match(stripped)
        item = ul or ol
        tag = "ul" if ul else "ol" if ol else None

        if list_tag and tag != list_tag:
            blocks[-1].append(f"</{list_tag}>")
            list_tag = None

        if item:
            if list_tag is None:
                blocks[-1].append(f"<{tag}>")
                list_tag = tag
            blocks[-1].append(f"<li>{_inline(item.group(1))}</li>")
            continue

        if not stripped:
            if blocks[-1]:
                blocks.append([])
            continue

        heading = HEADING.match(stripped)
        quote = BLOCKQUOTE.match(stripped)
        if heading:
            level = len(heading.group(1))
            blocks[-1].append(f"<h{level}>{_inline(heading.group(2))}</h{level}>")
        elif quote:
            blocks[-1].append(f"<blockquote>{_inline(quote.group(1))}</blockquote>")
        else:
            blocks[-1].append(_inline(stripped) + "<br>")

    if list_tag:
        blocks[-1].append(f"</{list_tag}>")

    paragraphs = []
    for block in blocks:
        if not block:
            continue
        body = "".join(block)
        body = re.sub(r"<br>(?=</?(?:ul|ol|h\d|blockquote|pre)\b)", "", body)
        body = re.sub(r"<br>$", "", body)
        paragraphs.append(body)

    if len(paragraphs) > 1:
        out = "".join(f"<p>{p}</p>" for p in paragraphs)
    else:
        out = "".join(paragraphs)

    for i, fragment in enumerate(protected):
        out = out.replace(f"\x00{i}\x00", fragment)
    return out


def render_side(markdown: str, image: str = "") -> str:
    """Full HTML for one note field: stylesheet, optional image, content."""
    parts = [STYLE_BLOCK, '<div class="card-content">']
    if image:
        parts.append(f'<img src="{html.escape(image)}">')
    parts.append(markdown_to_html(markdown))
    parts.append("</div>")
    return "".join(parts)
