import io
import logging
import time
from functools import partial
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Union

from docx import Document
from docx.enum.table import WD_CELL_VERTICAL_ALIGNMENT, WD_TABLE_ALIGNMENT
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.oxml import OxmlElement
from docx.oxml.ns import qn
from docx.shared import Cm, Emu, Mm, Pt, RGBColor, Twips

from docweaver.core.blocks import (
    Block, Blockquote, CodeFence, Heading, Image, MathBlock, Paragraph, Table,
)
from docweaver.core.classifier import segment
from docweaver.core.images import DEFAULT_TIMEOUT, ExtractedImage, fit_to_width, resolve_image
from docweaver.core.inline import InlineRun, MathRun, parse_inline
from docweaver.core.styles import DocumentStyle, WordTemplate, resolve_style
from docweaver.core.units import (
    indent_chars_to_twips, line_spacing_to_units, pixels_to_emu, points_to_twips,
)
from docweaver.features.registry import Feature, FeatureState, FeatureType

logger = logging.getLogger(__name__)

# Constants
MAX_EXPORT_MARKDOWN_SIZE = 20 * 1024 * 1024  # 20 MB
DOCX_MIME_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

TABLE_CAPTION_LABEL = "Table"
FIGURE_CAPTION_LABEL = "Figure"

CODE_FONT = "JetBrains Mono"
CODE_FONT_SIZE = 10
CODE_TEXT_COLOR = "334155"
CODE_BACKGROUND = "F8FAFC"
CODE_BORDER_COLOR = "E2E8F0"
CODE_ACCENT_COLOR = "3B82F6"
CODE_LINE_SPACING_TWIPS = 20
CODE_CELL_MARGIN_TWIPS = 200

QUOTE_INDENT_TWIPS = 720
QUOTE_TEXT_COLOR = "555555"
QUOTE_BACKGROUND = "F1F5F9"
QUOTE_SPACING_AFTER_TWIPS = 200

IMAGE_SPACING_TWIPS = 200
IMAGE_CAPTION_COLOR = "666666"
PLACEHOLDER_COLOR = "FF0000"
MATH_SPACING_TWIPS = 300

# Border widths are in eighths of a point
THIN_BORDER = 4
THICK_BORDER = 12
GRID_BORDER_COLOR = "94A3B8"
RULE_COLOR = "000000"
TABLE_CELL_MARGIN_TWIPS = 100

ALIGNMENT_MAP = {
    'left': WD_ALIGN_PARAGRAPH.LEFT,
    'center': WD_ALIGN_PARAGRAPH.CENTER,
    'right': WD_ALIGN_PARAGRAPH.RIGHT,
    'justify': WD_ALIGN_PARAGRAPH.JUSTIFY,
}

# Schema order of the WordprocessingML children we insert by hand
PPR_SHD_SUCCESSORS = (
    'w:tabs', 'w:suppressAutoHyphens', 'w:kinsoku', 'w:wordWrap', 'w:overflowPunct',
    'w:topLinePunct', 'w:autoSpaceDE', 'w:autoSpaceDN', 'w:bidi', 'w:adjustRightInd',
    'w:snapToGrid', 'w:spacing', 'w:ind', 'w:contextualSpacing', 'w:mirrorIndents',
    'w:suppressOverlap', 'w:jc', 'w:textDirection', 'w:textAlignment', 'w:textboxTightWrap',
    'w:outlineLvl', 'w:divId', 'w:cnfStyle', 'w:rPr', 'w:sectPr', 'w:pPrChange',
)
RPR_SHD_SUCCESSORS = (
    'w:fitText', 'w:vertAlign', 'w:rtl', 'w:cs', 'w:em', 'w:lang',
    'w:eastAsianLayout', 'w:specVanish', 'w:oMath',
)
TCPR_BORDERS_SUCCESSORS = (
    'w:shd', 'w:noWrap', 'w:tcMar', 'w:textDirection', 'w:tcFitText', 'w:vAlign',
    'w:hideMark', 'w:headers', 'w:cellIns', 'w:cellDel', 'w:cellMerge', 'w:tcPrChange',
)
TCPR_SHD_SUCCESSORS = TCPR_BORDERS_SUCCESSORS[1:]
TCPR_MAR_SUCCESSORS = TCPR_BORDERS_SUCCESSORS[3:]


class ConversionError(RuntimeError):
    """The document could not be built or serialized."""


# ============================================================================
# LOW-LEVEL OXML HELPERS
# ============================================================================

def set_spacing(paragraph, before: Optional[int] = None, after: Optional[int] = None,
                line: Optional[int] = None) -> None:
    """Write w:spacing in raw layout units (twips for before/after, 240ths for line)."""
    spacing = paragraph._p.get_or_add_pPr().get_or_add_spacing()
    if before is not None:
        spacing.set(qn('w:before'), str(before))
    if after is not None:
        spacing.set(qn('w:after'), str(after))
    if line is not None:
        spacing.set(qn('w:line'), str(line))
        spacing.set(qn('w:lineRule'), 'auto')


def shade_paragraph(paragraph, fill: str) -> None:
    pPr = paragraph._p.get_or_add_pPr()
    pPr.insert_element_before(_shading(fill), *PPR_SHD_SUCCESSORS)


def shade_cell(cell, fill: str) -> None:
    tcPr = cell._tc.get_or_add_tcPr()
    tcPr.insert_element_before(_shading(fill), *TCPR_SHD_SUCCESSORS)


def _shading(fill: str):
    shd = OxmlElement('w:shd')
    shd.set(qn('w:val'), 'clear')
    shd.set(qn('w:color'), 'auto')
    shd.set(qn('w:fill'), fill)
    return shd


def set_cell_borders(cell, **edges: Optional[Dict[str, Any]]) -> None:
    """
    Set per-edge cell borders. Each keyword (top/left/bottom/right) maps to a
    dict with 'sz' and 'color', or None to suppress that edge.
    """
    tcPr = cell._tc.get_or_add_tcPr()
    existing = tcPr.find(qn('w:tcBorders'))
    if existing is not None:
        tcPr.remove(existing)
    borders = OxmlElement('w:tcBorders')
    for edge in ('top', 'left', 'bottom', 'right'):
        edge_style = edges.get(edge)
        border = OxmlElement(f'w:{edge}')
        if edge_style is None:
            border.set(qn('w:val'), 'nil')
        else:
            border.set(qn('w:val'), edge_style.get('val', 'single'))
            border.set(qn('w:sz'), str(edge_style['sz']))
            border.set(qn('w:space'), '0')
            border.set(qn('w:color'), edge_style['color'])
        borders.append(border)
    tcPr.insert_element_before(borders, *TCPR_BORDERS_SUCCESSORS)


def set_cell_margins(cell, twips: int) -> None:
    tcPr = cell._tc.get_or_add_tcPr()
    margins = OxmlElement('w:tcMar')
    for edge in ('top', 'left', 'bottom', 'right'):
        node = OxmlElement(f'w:{edge}')
        node.set(qn('w:w'), str(twips))
        node.set(qn('w:type'), 'dxa')
        margins.append(node)
    tcPr.insert_element_before(margins, *TCPR_MAR_SUCCESSORS)


def set_table_full_width(table) -> None:
    tblPr = table._tbl.tblPr
    tblW = tblPr.find(qn('w:tblW'))
    if tblW is None:
        tblW = OxmlElement('w:tblW')
        tblPr.append(tblW)
    tblW.set(qn('w:type'), 'pct')
    tblW.set(qn('w:w'), '5000')


def math_element(latex: str):
    """An OMML m:oMath holding the formula source as a single math run."""
    omath = OxmlElement('m:oMath')
    run = OxmlElement('m:r')
    text = OxmlElement('m:t')
    text.set(qn('xml:space'), 'preserve')
    text.text = latex
    run.append(text)
    omath.append(run)
    return omath


def apply_font(run, font: str, size: float, color: str, bold: bool = False, italic: bool = False) -> None:
    run.font.name = font
    run._element.rPr.rFonts.set(qn('w:eastAsia'), font)
    run.font.size = Pt(size)
    run.font.color.rgb = RGBColor.from_string(color.upper())
    if bold:
        run.bold = True
    if italic:
        run.italic = True


def add_inline_runs(paragraph, runs: Iterable[InlineRun]) -> None:
    for item in runs:
        if isinstance(item, MathRun):
            paragraph._p.append(math_element(item.latex))
            continue
        run = paragraph.add_run(item.text)
        apply_font(run, item.font, item.size, item.color, bold=item.bold, italic=item.italic)
        if item.shading:
            rPr = run._element.get_or_add_rPr()
            rPr.insert_element_before(_shading(item.shading), *RPR_SHD_SUCCESSORS)


# ============================================================================
# BLOCK EMITTERS
# ============================================================================

ImageLoader = Callable[[str], Optional[ExtractedImage]]


class WordDocumentBuilder:
    """
    Emits one group of Word nodes per Markdown block into a fresh document.
    The style is fixed for the lifetime of the builder.
    """

    def __init__(self, style: DocumentStyle, image_loader: Optional[ImageLoader] = None):
        self.style = style
        self.image_loader = image_loader or resolve_image
        self.document = Document()
        self._setup_page()
        self._emitters = {
            Heading: self.emit_heading,
            Image: self.emit_image,
            CodeFence: self.emit_code_fence,
            Table: self.emit_table,
            MathBlock: self.emit_math,
            Blockquote: self.emit_blockquote,
            Paragraph: self.emit_paragraph,
        }

    def _setup_page(self) -> None:
        section = self.document.sections[0]
        section.page_width = Mm(210)
        section.page_height = Mm(297)
        section.top_margin = Cm(2.54)
        section.bottom_margin = Cm(2.54)
        section.left_margin = Cm(3.18)
        section.right_margin = Cm(3.18)

    def build(self, blocks: Iterable[Block]):
        for block in blocks:
            self.emit(block)
        return self.document

    def emit(self, block: Block) -> None:
        emitter = self._emitters.get(type(block))
        if emitter is None:
            raise TypeError(f"No emitter for block type {type(block).__name__}")
        emitter(block)

    # --- text blocks -------------------------------------------------------

    def emit_heading(self, block: Heading):
        heading = self.style.heading(block.level)
        paragraph = self.document.add_paragraph(style=f"Heading {min(block.level, 3)}")
        paragraph.alignment = ALIGNMENT_MAP[block.alignment or heading.alignment]
        set_spacing(
            paragraph,
            before=points_to_twips(heading.spacing.before),
            after=points_to_twips(heading.spacing.after),
            line=line_spacing_to_units(heading.line_spacing),
        )
        add_inline_runs(paragraph, parse_inline(block.content, heading.font_face, heading.font_size, heading.color))
        return paragraph

    def emit_paragraph(self, block: Paragraph):
        body = self.style.body
        alignment = block.alignment or body.alignment
        paragraph = self.document.add_paragraph()
        paragraph.alignment = ALIGNMENT_MAP[alignment]
        set_spacing(
            paragraph,
            before=points_to_twips(body.paragraph_spacing.before),
            after=points_to_twips(body.paragraph_spacing.after),
            line=line_spacing_to_units(body.line_spacing),
        )
        # Centered and right-aligned text is never indented
        indent = indent_chars_to_twips(body.first_line_indent) if alignment in ('left', 'justify') else 0
        paragraph.paragraph_format.first_line_indent = Twips(indent)
        add_inline_runs(paragraph, parse_inline(block.content, body.font_face, body.font_size, body.text_color))
        return paragraph

    def emit_blockquote(self, block: Blockquote):
        body = self.style.body
        paragraph = self.document.add_paragraph()
        if block.alignment:
            paragraph.alignment = ALIGNMENT_MAP[block.alignment]
        paragraph.paragraph_format.left_indent = Twips(QUOTE_INDENT_TWIPS)
        shade_paragraph(paragraph, QUOTE_BACKGROUND)
        set_spacing(paragraph, after=QUOTE_SPACING_AFTER_TWIPS)
        add_inline_runs(paragraph, parse_inline(block.content, body.font_face, body.font_size, QUOTE_TEXT_COLOR))
        return paragraph

    def emit_math(self, block: MathBlock):
        paragraph = self.document.add_paragraph()
        paragraph.alignment = WD_ALIGN_PARAGRAPH.CENTER
        set_spacing(paragraph, before=MATH_SPACING_TWIPS, after=MATH_SPACING_TWIPS)
        paragraph._p.append(math_element(block.latex))
        return paragraph

    # --- code ----------------------------------------------------------------

    def emit_code_fence(self, block: CodeFence):
        table = self.document.add_table(rows=1, cols=1)
        set_table_full_width(table)
        cell = table.cell(0, 0)
        thin = {'sz': 1, 'color': CODE_BORDER_COLOR}
        set_cell_borders(cell, top=thin, bottom=thin, right=thin, left={'sz': 6, 'color': CODE_ACCENT_COLOR})
        shade_cell(cell, CODE_BACKGROUND)
        set_cell_margins(cell, CODE_CELL_MARGIN_TWIPS)

        lines = block.lines or ['']
        for number, line in enumerate(lines):
            paragraph = cell.paragraphs[0] if number == 0 else cell.add_paragraph()
            set_spacing(paragraph, before=CODE_LINE_SPACING_TWIPS, after=CODE_LINE_SPACING_TWIPS)
            run = paragraph.add_run(line)
            apply_font(run, CODE_FONT, CODE_FONT_SIZE, CODE_TEXT_COLOR)
        return table

    # --- tables --------------------------------------------------------------

    def emit_table(self, block: Table):
        body = self.style.body
        caption = self.document.add_paragraph()
        caption.alignment = WD_ALIGN_PARAGRAPH.CENTER
        set_spacing(caption, before=points_to_twips(body.paragraph_spacing.after), after=0)
        apply_font(caption.add_run(f"{TABLE_CAPTION_LABEL} {block.caption_index}"),
                   body.font_face, body.font_size, body.text_color, bold=True)

        rows = block.rows or [['']]
        columns = max(1, block.column_count)
        table = self.document.add_table(rows=len(rows), cols=columns)
        table.alignment = WD_TABLE_ALIGNMENT.CENTER
        set_table_full_width(table)

        cell_size = body.font_size - 1
        has_header = block.header_row is not None
        for r_idx, values in enumerate(rows):
            for c_idx in range(columns):
                text = values[c_idx] if c_idx < len(values) else ''
                cell = table.cell(r_idx, c_idx)
                cell.vertical_alignment = WD_CELL_VERTICAL_ALIGNMENT.CENTER
                set_cell_margins(cell, TABLE_CELL_MARGIN_TWIPS)
                paragraph = cell.paragraphs[0]
                if r_idx == 0 and has_header:
                    paragraph.alignment = WD_ALIGN_PARAGRAPH.CENTER
                    apply_font(paragraph.add_run(text), body.font_face, cell_size, body.text_color, bold=True)
                else:
                    add_inline_runs(paragraph, parse_inline(text, body.font_face, cell_size, body.text_color))

        if self.style.table.is_three_line_table:
            self._apply_three_line_borders(table)
        else:
            self._apply_grid_borders(table)
        return table

    def _apply_three_line_borders(self, table) -> None:
        thick = {'sz': THICK_BORDER, 'color': RULE_COLOR}
        thin = {'sz': THIN_BORDER, 'color': RULE_COLOR}
        last = len(table.rows) - 1
        for r_idx, row in enumerate(table.rows):
            top = thick if r_idx == 0 else None
            if r_idx == last:
                bottom = thick
            elif r_idx == 0:
                bottom = thin
            else:
                bottom = None
            for cell in row.cells:
                set_cell_borders(cell, top=top, bottom=bottom, left=None, right=None)

    def _apply_grid_borders(self, table) -> None:
        table.style = 'Table Grid'
        thin = {'sz': THIN_BORDER, 'color': GRID_BORDER_COLOR}
        for row in table.rows:
            for cell in row.cells:
                set_cell_borders(cell, top=thin, bottom=thin, left=thin, right=thin)

    # --- images --------------------------------------------------------------

    def emit_image(self, block: Image):
        image = self.image_loader(block.source_url)
        if image is None:
            return self._image_placeholder(block)

        width, height = fit_to_width(image.width, image.height)
        paragraph = self.document.add_paragraph()
        paragraph.alignment = WD_ALIGN_PARAGRAPH.CENTER
        set_spacing(paragraph, before=IMAGE_SPACING_TWIPS, after=IMAGE_SPACING_TWIPS)
        try:
            shape = paragraph.add_run().add_picture(
                io.BytesIO(image.data),
                width=Emu(pixels_to_emu(width)),
                height=Emu(pixels_to_emu(height)),
            )
        except Exception as e:
            logger.warning(f"WordExport: Could not embed image '{block.source_url[:80]}': {e}")
            paragraph._p.getparent().remove(paragraph._p)
            return self._image_placeholder(block)

        doc_pr = shape._inline.docPr
        doc_pr.set('descr', block.alt_text)
        doc_pr.set('title', block.alt_text)

        if block.alt_text:
            body = self.style.body
            caption = self.document.add_paragraph()
            caption.alignment = WD_ALIGN_PARAGRAPH.CENTER
            set_spacing(caption, after=IMAGE_SPACING_TWIPS)
            apply_font(caption.add_run(f"{FIGURE_CAPTION_LABEL}: {block.alt_text}"),
                       body.font_face, body.font_size - 2, IMAGE_CAPTION_COLOR, italic=True)
        return paragraph

    def _image_placeholder(self, block: Image):
        paragraph = self.document.add_paragraph()
        paragraph.alignment = WD_ALIGN_PARAGRAPH.CENTER
        run = paragraph.add_run(f"[Image: {block.alt_text} - Download Failed]")
        run.font.color.rgb = RGBColor.from_string(PLACEHOLDER_COLOR)
        return paragraph


# ============================================================================
# EXPORT ENTRY POINTS
# ============================================================================

def build_document(markdown: str, style: DocumentStyle, base_dir: Optional[Path] = None,
                   image_timeout: float = DEFAULT_TIMEOUT,
                   image_loader: Optional[ImageLoader] = None):
    """Parse Markdown and emit it into a new python-docx Document."""
    loader = image_loader or partial(resolve_image, base_dir=base_dir, timeout=image_timeout)
    blocks = segment(markdown)
    return WordDocumentBuilder(style, image_loader=loader).build(blocks)


def convert_markdown(markdown: str,
                     template: Union[str, WordTemplate, None] = WordTemplate.STANDARD,
                     custom_style: Optional[DocumentStyle] = None,
                     base_dir: Optional[Path] = None,
                     image_timeout: float = DEFAULT_TIMEOUT,
                     image_loader: Optional[ImageLoader] = None) -> bytes:
    """
    Convert Markdown to .docx bytes.
    Raises ValueError for oversized input and ConversionError if the document
    cannot be produced.
    """
    size = len(markdown.encode('utf-8'))
    if size > MAX_EXPORT_MARKDOWN_SIZE:
        raise ValueError(f"Content too large ({size/1024/1024:.2f} MB). Max {MAX_EXPORT_MARKDOWN_SIZE/1024/1024:.0f} MB.")

    style = resolve_style(template, custom_style)
    logger.info(f"WordExport: Generating document from {size} bytes of Markdown (template={template})...")
    started = time.perf_counter()
    try:
        document = build_document(markdown, style, base_dir=base_dir,
                                  image_timeout=image_timeout, image_loader=image_loader)
        buffer = io.BytesIO()
        document.save(buffer)
    except Exception as e:
        logger.error(f"WordExport: Conversion failed: {e}", exc_info=True)
        raise ConversionError(f"Word export failed: {e}") from e

    data = buffer.getvalue()
    logger.info(f"WordExport: Complete. {len(data)} bytes in {time.perf_counter() - started:.2f}s")
    return data


def export_to_word(markdown: str, template: Union[str, WordTemplate, None] = WordTemplate.STANDARD,
                   style: Union[DocumentStyle, Mapping[str, Any], None] = None, **options) -> bytes:
    """
    Export handler registered for the 'docx' format.
    ``style`` may be a DocumentStyle or its JSON wire form.
    """
    custom_style = style
    if style is not None and not isinstance(style, DocumentStyle):
        custom_style = DocumentStyle.from_dict(style)
    return convert_markdown(markdown, template, custom_style, **options)


def export_filename(template: Union[str, WordTemplate, None]) -> str:
    name = template.value if isinstance(template, WordTemplate) else (template or WordTemplate.STANDARD.value)
    return f"Doc_{name}_{int(time.time() * 1000)}.docx"


# Expose features for FeatureManager
def get_features() -> List[Feature]:
    return [
        Feature(
            name="docx",
            handler=export_to_word,
            feature_type=FeatureType.EXPORT_HANDLER,
            state=FeatureState.STANDARD,
            meta={'extension': 'docx', 'mime_type': DOCX_MIME_TYPE, 'preinstalled': True},
        )
    ]


# Metadata
PLUGIN_METADATA = {
    'name': 'Word Export',
    'description': 'Exports Markdown to Microsoft Word (.docx) using document templates.',
    'category': 'export',
    'preinstalled': True
}
