"""
Minimal HTML to Markdown conversion for content pasted into the editor.

Only the tags the exporter understands are mapped; every other element is
transparent and contributes its text.
"""
import re

from bs4 import BeautifulSoup, Comment, Doctype, NavigableString, Tag

BLOCK_PREFIX = {
    'h1': '\n# ',
    'h2': '\n## ',
    'h3': '\n### ',
    'p': '\n\n',
    'li': '\n- ',
    'pre': '\n```\n',
}
BLOCK_SUFFIX = {
    'h1': '\n',
    'h2': '\n',
    'h3': '\n',
    'p': '\n',
    'pre': '\n```\n',
}
INLINE_WRAP = {
    'strong': '**',
    'b': '**',
    'em': '*',
    'i': '*',
    'code': '`',
}
SKIPPED_TAGS = ['script', 'style', 'head']


def html_to_markdown(html: str) -> str:
    soup = BeautifulSoup(html, 'html.parser')
    for tag in soup.find_all(SKIPPED_TAGS):
        tag.decompose()
    root = soup.body or soup
    parts = []
    _walk(root, parts, in_pre=False)
    return re.sub(r'\n\n\n+', '\n\n', ''.join(parts)).strip()


def _walk(node, parts, in_pre: bool) -> None:
    for child in node.children:
        if isinstance(child, (Comment, Doctype)):
            continue
        if isinstance(child, NavigableString):
            parts.append(str(child))
            continue
        if not isinstance(child, Tag):
            continue

        name = child.name.lower()
        if name == 'br':
            parts.append('\n')
            continue

        # Code inside a fenced block is already literal
        wrap = INLINE_WRAP.get(name, '')
        if name == 'code' and in_pre:
            wrap = ''

        parts.append(BLOCK_PREFIX.get(name, '') + wrap)
        _walk(child, parts, in_pre or name == 'pre')
        parts.append(wrap + BLOCK_SUFFIX.get(name, ''))
