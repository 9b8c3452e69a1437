"""
Inline span parsing.

Splits one line of text into styled runs: bold, italic, bold-italic, inline
code and inline math. Spans do not nest and cannot contain their own
delimiter; anything between spans is emitted as plain text in the ambient
font.
"""
import re
from dataclasses import dataclass
from typing import List, Optional, Union

CODE_FONT = "JetBrains Mono"
CODE_COLOR = "E11D48"
CODE_SHADING = "F1F5F9"

# Longest delimiters first so '**' is never read as two '*'
INLINE_PATTERN = re.compile(r'(\*\*\*|\*\*|__|\*|_|`|\$)(.+?)\1')


@dataclass(frozen=True)
class TextRun:
    text: str
    font: str
    size: float
    color: str
    bold: bool = False
    italic: bool = False
    shading: Optional[str] = None


@dataclass(frozen=True)
class MathRun:
    latex: str

    @property
    def text(self) -> str:
        return self.latex


InlineRun = Union[TextRun, MathRun]


def parse_inline(text: str, font: str, size: float, color: str) -> List[InlineRun]:
    """Tokenize ``text`` into runs that together cover the whole line."""
    runs: List[InlineRun] = []
    last_index = 0

    for match in INLINE_PATTERN.finditer(text):
        if match.start() > last_index:
            runs.append(TextRun(text[last_index:match.start()], font, size, color))

        marker, content = match.group(1), match.group(2)
        if marker == '***':
            runs.append(TextRun(content, font, size, color, bold=True, italic=True))
        elif marker in ('**', '__'):
            runs.append(TextRun(content, font, size, color, bold=True))
        elif marker in ('*', '_'):
            runs.append(TextRun(content, font, size, color, italic=True))
        elif marker == '`':
            runs.append(TextRun(content, CODE_FONT, size - 1, CODE_COLOR, shading=CODE_SHADING))
        else:
            runs.append(MathRun(content))

        last_index = match.end()

    if last_index < len(text):
        runs.append(TextRun(text[last_index:], font, size, color))

    return runs


def plain_text(runs: List[InlineRun]) -> str:
    """Visible text of a run sequence, delimiters removed."""
    return ''.join(run.text for run in runs)
