"""
DocWeaver HTTP API
A Flask application exposing Markdown export to Word and document import.
"""
import io
import logging
from typing import Any, Dict, Optional

from flask import Flask, jsonify, request, send_file

from docweaver.core.config import configured_style, load_config
from docweaver.core.loader import load_plugins
from docweaver.core.styles import PRESETS, StyleError
from docweaver.features.registry import FeatureManager, PluginRegistry
from docweaver.features.standard import core_features
from docweaver.version_info import __version__ as VERSION

logger = logging.getLogger(__name__)

MAX_FILE_SIZE = 20 * 1024 * 1024  # 20 MB of Markdown
MIME_TYPES = {
    'docx': "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
}

app = Flask(__name__)
CONFIG: Dict[str, Any] = load_config()
FEATURES: Optional[FeatureManager] = None


def init_features(config: Dict[str, Any], registry: Optional[PluginRegistry] = None) -> FeatureManager:
    """Load plugins, register core features and plugin blueprints."""
    registry = registry if registry is not None else PluginRegistry()
    load_plugins(registry, extra_dirs=config.get('plugin_dirs'))

    manager = FeatureManager(registry)
    for feature in core_features():
        manager.register(feature)
    manager.refresh()
    registry.register_blueprints(app)
    logger.info(f"Registry initialized. Feature count: {len(manager._features)}")
    return manager


try:
    logger.info(f"Application starting - Version {VERSION}")
    FEATURES = init_features(CONFIG)
except Exception as e:
    logger.error(f"Plugin system initialization failed: {e}", exc_info=True)
    FEATURES = FeatureManager()


@app.route('/api/version')
def get_version():
    return jsonify({'version': VERSION})


@app.route('/api/templates')
def get_templates():
    """Built-in document templates in their JSON wire form."""
    return jsonify({template.value: style.to_dict() for template, style in PRESETS.items()})


@app.route('/api/export/<format_ext>', methods=['POST'])
def handle_export_request(format_ext):
    """
    Export Markdown through the registered handler for ``format_ext``.
    Body: {"markdown": str, "template": str?, "style": object?}
    """
    data = request.get_json(silent=True) or {}
    markdown = data.get('markdown')
    if not isinstance(markdown, str) or not markdown.strip():
        return jsonify({"error": "No markdown provided"}), 400

    content_size = len(markdown.encode('utf-8'))
    if content_size > MAX_FILE_SIZE:
        return jsonify({
            "error": "File Too Large",
            "message": f"The content is {content_size / (1024 * 1024):.2f} MB, which exceeds the maximum of {MAX_FILE_SIZE / (1024 * 1024):.0f} MB.",
        }), 413

    handler = FEATURES.get_export_handler(format_ext)
    if not handler:
        return jsonify({
            "error": "Export plugin not installed",
            "code": "MISSING_PLUGIN",
            "message": f"The {format_ext.upper()} export plugin is not installed."
        }), 404

    template = data.get('template') or CONFIG['default_template']
    style = data.get('style')
    try:
        if style is None and template == 'custom':
            style = configured_style(CONFIG)
        markdown = FEATURES.build_pipeline().run(markdown)
        output_data = handler(markdown, template=template, style=style, image_timeout=CONFIG['image_timeout'])
    except StyleError as e:
        return jsonify({"error": f"Invalid style: {e}"}), 400
    except Exception as e:
        logger.error(f"Export failed: {e}", exc_info=True)
        return jsonify({"error": str(e)}), 500

    if not output_data:
        return jsonify({"error": "Export handler returned no data"}), 500

    from docweaver.plugins.word_export.plugin import export_filename
    return send_file(
        io.BytesIO(output_data),
        mimetype=MIME_TYPES.get(format_ext, "application/octet-stream"),
        as_attachment=True,
        download_name=export_filename(template) if format_ext == 'docx' else f"export.{format_ext}",
    )


@app.route('/api/debug/features', methods=['GET'])
def debug_features():
    features_list = [
        {"name": f.name, "type": f.type.name, "state": f.state.name, "extension": f.meta.get('extension')}
        for f in (FEATURES._features if FEATURES else [])
    ]
    return jsonify({"count": len(features_list), "features": features_list})


if __name__ == '__main__':
    app.run(debug=True, host='localhost', port=8000)
