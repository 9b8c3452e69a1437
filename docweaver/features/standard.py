"""
Core Markdown pre-processing steps applied before export.
"""
import re
from typing import List

from docweaver.features.registry import Feature, FeatureState, FeatureType

TOC_MARKER = re.compile(r'^\s*\[TOC\]\s*$', re.MULTILINE | re.IGNORECASE)
TOC_PLACEHOLDER = re.compile(r'<!--TOC_PLACEHOLDER_START-->.*?<!--TOC_PLACEHOLDER_END-->', re.DOTALL)


def normalize_newlines(md_text: str) -> str:
    """CRLF and bare CR become LF so the line cursor sees one line per row."""
    return md_text.replace('\r\n', '\n').replace('\r', '\n')


def strip_toc_markers(md_text: str) -> str:
    """Drop [TOC] marker lines and generated TOC placeholder blocks."""
    md_text = TOC_PLACEHOLDER.sub('', md_text)
    return TOC_MARKER.sub('', md_text)


def core_features() -> List[Feature]:
    return [
        Feature("normalize_newlines", normalize_newlines, FeatureState.STANDARD, FeatureType.ALGORITHM),
        Feature("strip_toc_markers", strip_toc_markers, FeatureState.STANDARD, FeatureType.ALGORITHM),
    ]
