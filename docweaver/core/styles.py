"""
Document style model and template resolution.

A conversion run resolves exactly one DocumentStyle up front and passes it,
read-only, to every block emitter.
"""
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Union

logger = logging.getLogger(__name__)

ALIGNMENTS = ('left', 'center', 'right', 'justify')


class StyleError(ValueError):
    """Raised when a custom style payload is incomplete or malformed."""


class WordTemplate(Enum):
    STANDARD = 'standard'
    ACADEMIC = 'academic'
    NOTE = 'note'
    CUSTOM = 'custom'


@dataclass(frozen=True)
class Spacing:
    """Space before/after a paragraph, in points."""
    before: float = 0.0
    after: float = 0.0


@dataclass(frozen=True)
class BodyStyle:
    font_face: str
    font_size: float
    line_spacing: float
    text_color: str
    alignment: str
    paragraph_spacing: Spacing = field(default_factory=Spacing)
    first_line_indent: float = 0.0


@dataclass(frozen=True)
class HeadingStyle:
    font_face: str
    font_size: float
    color: str
    alignment: str
    line_spacing: float
    spacing: Spacing = field(default_factory=Spacing)


@dataclass(frozen=True)
class TableStyle:
    is_three_line_table: bool = False


@dataclass(frozen=True)
class DocumentStyle:
    body: BodyStyle
    heading1: HeadingStyle
    heading2: HeadingStyle
    heading3: HeadingStyle
    table: TableStyle = field(default_factory=TableStyle)

    def heading(self, level: int) -> HeadingStyle:
        """Sub-style for a heading level; anything deeper than 3 uses heading3."""
        if level <= 1:
            return self.heading1
        if level == 2:
            return self.heading2
        return self.heading3

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> 'DocumentStyle':
        """
        Build a style from its JSON wire form (camelCase keys).
        Every field is required; there is no merging with a preset.
        """
        if not isinstance(payload, Mapping):
            raise StyleError("Custom style must be a JSON object")
        body = _section(payload, 'body')
        return cls(
            body=BodyStyle(
                font_face=_str(body, 'fontFace', 'body'),
                font_size=_number(body, 'fontSize', 'body'),
                line_spacing=_number(body, 'lineSpacing', 'body'),
                text_color=_color(body, 'textColor', 'body'),
                alignment=_alignment(body, 'body'),
                paragraph_spacing=_spacing(body, 'paragraphSpacing', 'body'),
                first_line_indent=_number(body, 'firstLineIndent', 'body'),
            ),
            heading1=_heading(payload, 'heading1'),
            heading2=_heading(payload, 'heading2'),
            heading3=_heading(payload, 'heading3'),
            table=TableStyle(is_three_line_table=bool(_require(_section(payload, 'table'), 'isThreeLineTable', 'table'))),
        )

    def to_dict(self) -> Dict[str, Any]:
        def heading(h: HeadingStyle) -> Dict[str, Any]:
            return {
                'fontFace': h.font_face,
                'fontSize': h.font_size,
                'color': h.color,
                'alignment': h.alignment,
                'lineSpacing': h.line_spacing,
                'spacing': {'before': h.spacing.before, 'after': h.spacing.after},
            }

        b = self.body
        return {
            'body': {
                'fontFace': b.font_face,
                'fontSize': b.font_size,
                'lineSpacing': b.line_spacing,
                'textColor': b.text_color,
                'alignment': b.alignment,
                'paragraphSpacing': {'before': b.paragraph_spacing.before, 'after': b.paragraph_spacing.after},
                'firstLineIndent': b.first_line_indent,
            },
            'heading1': heading(self.heading1),
            'heading2': heading(self.heading2),
            'heading3': heading(self.heading3),
            'table': {'isThreeLineTable': self.table.is_three_line_table},
        }


# --- wire-form helpers -----------------------------------------------------

def _require(section: Mapping[str, Any], key: str, where: str) -> Any:
    if key not in section:
        raise StyleError(f"Custom style is missing '{where}.{key}'")
    return section[key]


def _section(payload: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = _require(payload, key, 'style')
    if not isinstance(value, Mapping):
        raise StyleError(f"Custom style field '{key}' must be an object")
    return value


def _str(section, key, where) -> str:
    value = _require(section, key, where)
    if not isinstance(value, str) or not value.strip():
        raise StyleError(f"'{where}.{key}' must be a non-empty string")
    return value


def _number(section, key, where) -> float:
    value = _require(section, key, where)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise StyleError(f"'{where}.{key}' must be a number")
    return float(value)


def _color(section, key, where) -> str:
    value = _str(section, key, where).lstrip('#').upper()
    try:
        int(value, 16)
    except ValueError:
        raise StyleError(f"'{where}.{key}' must be a hex color, got {value!r}") from None
    if len(value) != 6:
        raise StyleError(f"'{where}.{key}' must be a 6-digit hex color, got {value!r}")
    return value


def _alignment(section, where) -> str:
    value = _str(section, 'alignment', where).lower()
    if value not in ALIGNMENTS:
        raise StyleError(f"'{where}.alignment' must be one of {', '.join(ALIGNMENTS)}")
    return value


def _spacing(section, key, where) -> Spacing:
    value = _require(section, key, where)
    if not isinstance(value, Mapping):
        raise StyleError(f"'{where}.{key}' must be an object with 'before' and 'after'")
    return Spacing(
        before=_number(value, 'before', f"{where}.{key}"),
        after=_number(value, 'after', f"{where}.{key}"),
    )


def _heading(payload, key) -> HeadingStyle:
    section = _section(payload, key)
    return HeadingStyle(
        font_face=_str(section, 'fontFace', key),
        font_size=_number(section, 'fontSize', key),
        color=_color(section, 'color', key),
        alignment=_alignment(section, key),
        line_spacing=_number(section, 'lineSpacing', key),
        spacing=_spacing(section, 'spacing', key),
    )


# --- presets ---------------------------------------------------------------

HEADING_SPACING = Spacing(before=20, after=10)


def _preset(font: str, size: float, line: float, text_color: str, heading_color: str,
            alignment: str, after: float, indent: float, three_line: bool) -> DocumentStyle:
    def heading(level: int, align: str) -> HeadingStyle:
        return HeadingStyle(
            font_face=font,
            font_size=size + (4 - level) * 2,
            color=heading_color,
            alignment=align,
            line_spacing=line,
            spacing=HEADING_SPACING,
        )

    return DocumentStyle(
        body=BodyStyle(
            font_face=font,
            font_size=size,
            line_spacing=line,
            text_color=text_color,
            alignment=alignment,
            paragraph_spacing=Spacing(before=0, after=after),
            first_line_indent=indent,
        ),
        heading1=heading(1, 'center'),
        heading2=heading(2, 'left'),
        heading3=heading(3, 'left'),
        table=TableStyle(is_three_line_table=three_line),
    )


PRESETS: Dict[WordTemplate, DocumentStyle] = {
    WordTemplate.STANDARD: _preset("SimSun", 12, 1.2, "000000", "000000", "justify", 10, 2, False),
    WordTemplate.ACADEMIC: _preset("Times New Roman", 10.5, 1.5, "000000", "000000", "justify", 5, 2, True),
    WordTemplate.NOTE: _preset("Microsoft YaHei", 11, 1.5, "374151", "2563EB", "left", 15, 0, False),
}


def parse_template(value: Union[str, WordTemplate, None]) -> Optional[WordTemplate]:
    """Map a template name to the enum; unknown names yield None."""
    if isinstance(value, WordTemplate):
        return value
    if not value:
        return None
    try:
        return WordTemplate(str(value).strip().lower())
    except ValueError:
        return None


def resolve_style(template: Union[str, WordTemplate, None],
                  custom_style: Optional[DocumentStyle] = None) -> DocumentStyle:
    """
    Pick the effective style for one conversion.
    A custom override is used as-is; unknown templates fall back to Standard.
    """
    selected = parse_template(template)
    if selected is WordTemplate.CUSTOM and custom_style is not None:
        return custom_style
    style = PRESETS.get(selected)
    if style is None:
        logger.debug(f"Template {template!r} has no preset, using standard")
        return PRESETS[WordTemplate.STANDARD]
    return style
