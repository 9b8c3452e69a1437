"""Block variants produced by the line classifier."""
from dataclasses import dataclass, field
from typing import List, Optional, Union


@dataclass(frozen=True)
class Heading:
    level: int
    content: str
    alignment: Optional[str] = None


@dataclass(frozen=True)
class Image:
    alt_text: str
    source_url: str


@dataclass(frozen=True)
class CodeFence:
    language: Optional[str] = None
    lines: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class Table:
    header_row: Optional[List[str]]
    body_rows: List[List[str]]
    caption_index: int = 0

    @property
    def rows(self) -> List[List[str]]:
        """Header (if any) followed by the body rows."""
        return ([self.header_row] if self.header_row is not None else []) + list(self.body_rows)

    @property
    def column_count(self) -> int:
        return max((len(r) for r in self.rows), default=0)


@dataclass(frozen=True)
class MathBlock:
    latex: str


@dataclass(frozen=True)
class Blockquote:
    content: str
    alignment: Optional[str] = None


@dataclass(frozen=True)
class Paragraph:
    content: str
    alignment: Optional[str] = None


Block = Union[Heading, Image, CodeFence, Table, MathBlock, Blockquote, Paragraph]
