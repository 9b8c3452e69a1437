import io
import logging
from typing import BinaryIO, List, Union

import mammoth
from flask import Blueprint, jsonify, request

from docweaver.core.html_to_markdown import html_to_markdown
from docweaver.features.registry import Feature, FeatureState, FeatureType

import_bp = Blueprint('word_import', __name__)
blueprint = import_bp
logger = logging.getLogger(__name__)

MAX_IMPORT_SIZE = 20 * 1024 * 1024  # 20 MB


def import_docx(source: Union[bytes, BinaryIO]) -> str:
    """Convert a Word document to Markdown."""
    stream = io.BytesIO(source) if isinstance(source, (bytes, bytearray)) else source
    result = mammoth.convert_to_markdown(stream)
    for msg in result.messages:
        logger.warning(f"Mammoth conversion message: {msg}")
    logger.info(f"WordImport: Converted Word document to {len(result.value)} chars of Markdown")
    return result.value


def import_html(source: Union[str, bytes]) -> str:
    """Convert pasted HTML to Markdown."""
    if isinstance(source, (bytes, bytearray)):
        source = source.decode('utf-8')
    return html_to_markdown(source)


def get_features_manager():
    """Deferred import to avoid circular dependency/init issues."""
    from docweaver.app import FEATURES
    return FEATURES


@import_bp.route('/api/import/<format_ext>', methods=['POST'])
def handle_import_request(format_ext):
    """Convert an uploaded document (multipart 'file') or JSON {'html': ...} into Markdown."""
    format_ext = format_ext.lower()
    importer = get_features_manager().get_import_handler(format_ext)
    if importer is None:
        return jsonify({'error': f"Unsupported import format: {format_ext}"}), 404

    if 'file' in request.files:
        payload = request.files['file'].read()
    else:
        data = request.get_json(silent=True) or {}
        payload = data.get('html') if format_ext == 'html' else None
    if not payload:
        return jsonify({'error': 'No content provided'}), 400
    if len(payload) > MAX_IMPORT_SIZE:
        return jsonify({'error': 'File Too Large'}), 413

    try:
        markdown = importer(payload)
    except Exception as e:
        logger.error(f"WordImport: {format_ext} import failed: {e}", exc_info=True)
        return jsonify({'error': f"Import failed: {e}"}), 500
    return jsonify({'markdown': markdown})


# Expose features for FeatureManager
def get_features() -> List[Feature]:
    return [
        Feature("docx_import", import_docx, FeatureState.STANDARD, FeatureType.IMPORT_HANDLER,
                meta={'extension': 'docx', 'preinstalled': True}),
        Feature("html_import", import_html, FeatureState.STANDARD, FeatureType.IMPORT_HANDLER,
                meta={'extension': 'html', 'preinstalled': True}),
    ]


# Metadata
PLUGIN_METADATA = {
    'name': 'Word Import',
    'description': 'Imports Word documents and pasted HTML into Markdown.',
    'category': 'import',
    'preinstalled': True
}
