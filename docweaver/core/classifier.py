"""
Line classifier and block segmenter.

Walks the Markdown source with an explicit line cursor. ``classify_at``
inspects the line under the cursor and returns the block it starts together
with the number of source lines that block consumed; ``segment`` drives the
cursor to the end of the input.
"""
import logging
import re
from dataclasses import replace
from typing import List, Optional, Sequence, Tuple

from docweaver.core.blocks import (
    Block, Blockquote, CodeFence, Heading, Image, MathBlock, Paragraph, Table,
)

logger = logging.getLogger(__name__)

_ALIGN = r'\{:align=(left|center|right|justify)\}'
ALIGN_LEADING = re.compile(r'^' + _ALIGN + r'\s*')
ALIGN_TRAILING = re.compile(r'\s*' + _ALIGN + r'$')
# Prefixes the alignment marker may follow: heading hashes, quote, list bullet/number
LINE_PREFIX = re.compile(r'^(#+\s*|>\s*|[-*+]\s+|\d+[.)]\s+)?')

HEADING_PATTERN = re.compile(r'^(#+)\s*')
IMAGE_PATTERN = re.compile(r'^!\[(.*?)\]\((.*?)\)')
FENCE = '```'
SEPARATOR_ROW = re.compile(r'^\|[:\s-]+\|')
QUOTE_PREFIX = re.compile(r'^>\s*')
MATH_FENCE = '$$'


def strip_alignment(line: str) -> Tuple[str, Optional[str]]:
    """
    Remove a ``{:align=...}`` marker from the start or end of the line content.

    The marker may sit right after a heading/quote/list prefix; the prefix is
    kept in the returned line. Returns ``(line_without_marker, alignment)``.
    """
    prefix = LINE_PREFIX.match(line).group(0)
    body = line[len(prefix):]

    match = ALIGN_LEADING.match(body)
    if match:
        return (prefix + body[match.end():]).rstrip(), match.group(1)

    match = ALIGN_TRAILING.search(body)
    if match:
        return (prefix + body[:match.start()]).rstrip(), match.group(1)

    return line, None


def split_row(raw_row: str) -> List[str]:
    """Split a pipe-table row into trimmed cell texts."""
    row = raw_row.strip()
    if row.startswith('|'):
        row = row[1:]
    if row.endswith('|'):
        row = row[:-1]
    return [cell.strip() for cell in row.split('|')]


def classify_at(lines: Sequence[str], index: int) -> Tuple[Optional[Block], int]:
    """
    Classify the block starting at ``lines[index]``.
    Returns the block (None for lines that produce nothing) and the number of
    lines consumed, always at least 1.
    """
    line = lines[index].strip()
    if not line:
        return None, 1

    if line.startswith('#'):
        text, alignment = strip_alignment(line)
        level = len(HEADING_PATTERN.match(text).group(1))
        content = HEADING_PATTERN.sub('', text, count=1)
        return Heading(level=level, content=content, alignment=alignment), 1

    image = IMAGE_PATTERN.match(line)
    if image:
        return Image(alt_text=image.group(1), source_url=image.group(2).strip()), 1

    if line.startswith(FENCE):
        return _code_fence(lines, index)

    if line.startswith('|'):
        return _table(lines, index)

    if line.startswith(MATH_FENCE):
        return _math_block(lines, index)

    if line.startswith('>'):
        text, alignment = strip_alignment(line)
        return Blockquote(content=QUOTE_PREFIX.sub('', text, count=1), alignment=alignment), 1

    text, alignment = strip_alignment(line)
    if not text.strip():
        # Marker-only line: blank once the marker is removed
        return None, 1
    return Paragraph(content=text, alignment=alignment), 1


def _code_fence(lines: Sequence[str], index: int) -> Tuple[CodeFence, int]:
    language = lines[index].strip()[len(FENCE):].strip() or None
    cursor = index + 1
    body = []
    while cursor < len(lines) and not lines[cursor].strip().startswith(FENCE):
        body.append(lines[cursor])
        cursor += 1
    if cursor < len(lines):
        cursor += 1  # closing fence
    else:
        logger.debug(f"Unterminated code fence at line {index + 1}, closing at end of input")
    return CodeFence(language=language, lines=body), cursor - index


def _table(lines: Sequence[str], index: int) -> Tuple[Table, int]:
    cursor = index
    rows = []
    while cursor < len(lines) and lines[cursor].strip().startswith('|'):
        raw_row = lines[cursor].strip()
        if not SEPARATOR_ROW.match(raw_row):
            rows.append(split_row(raw_row))
        cursor += 1
    header = rows[0] if rows else None
    return Table(header_row=header, body_rows=rows[1:]), cursor - index


def _math_block(lines: Sequence[str], index: int) -> Tuple[MathBlock, int]:
    formula = lines[index].strip().replace(MATH_FENCE, '')
    if formula.strip():
        return MathBlock(latex=formula.strip()), 1

    cursor = index + 1
    body = []
    while cursor < len(lines) and lines[cursor].strip() != MATH_FENCE:
        body.append(lines[cursor].strip())
        cursor += 1
    if cursor < len(lines):
        cursor += 1  # closing $$
    else:
        logger.debug(f"Unterminated math block at line {index + 1}, closing at end of input")
    return MathBlock(latex=' '.join(part for part in body if part)), cursor - index


def segment(markdown: str) -> List[Block]:
    """
    Split a Markdown document into blocks in source order.
    Tables are numbered from 1 for every call.
    """
    lines = markdown.split('\n')
    blocks: List[Block] = []
    table_count = 0
    index = 0
    while index < len(lines):
        block, consumed = classify_at(lines, index)
        if isinstance(block, Table):
            table_count += 1
            block = replace(block, caption_index=table_count)
        if block is not None:
            blocks.append(block)
        index += consumed
    logger.debug(f"Segmented {len(lines)} lines into {len(blocks)} blocks")
    return blocks
