"""
Application configuration.

Settings come from a JSON file (``config.json`` in the working directory or
the path in ``DOCWEAVER_CONFIG``) layered over built-in defaults.
"""
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

from docweaver.core.styles import DocumentStyle

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = 'DOCWEAVER_CONFIG'
DEFAULT_CONFIG_FILE = 'config.json'

DEFAULTS: Dict[str, Any] = {
    'default_template': 'standard',
    'image_timeout': 10.0,
    'log_dir': 'logs',
    'plugin_dirs': [],
    'custom_style': None,
}


def config_path() -> Path:
    return Path(os.environ.get(CONFIG_ENV_VAR, DEFAULT_CONFIG_FILE))


def load_config(path: Optional[Path] = None) -> Dict[str, Any]:
    """Load configuration; a missing or unreadable file yields the defaults."""
    config = dict(DEFAULTS)
    config_file = Path(path) if path is not None else config_path()
    if not config_file.exists():
        return config
    try:
        with open(config_file, 'r', encoding='utf-8') as f:
            loaded = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.error(f"Failed to load config {config_file}: {e}")
        return config

    if not isinstance(loaded, dict):
        logger.error(f"Config {config_file} must contain a JSON object, ignoring it")
        return config

    unknown = set(loaded) - set(DEFAULTS)
    if unknown:
        logger.warning(f"Ignoring unknown config keys: {sorted(unknown)}")
    config.update({k: v for k, v in loaded.items() if k in DEFAULTS})
    logger.info(f"Configuration loaded from {config_file}")
    return config


def load_style_file(path: Path) -> DocumentStyle:
    """Read a custom DocumentStyle from a JSON file in wire form."""
    with open(path, 'r', encoding='utf-8') as f:
        payload = json.load(f)
    return DocumentStyle.from_dict(payload)


def configured_style(config: Dict[str, Any]) -> Optional[DocumentStyle]:
    """The custom style named in the configuration, if any."""
    style_path = config.get('custom_style')
    if not style_path:
        return None
    return load_style_file(Path(style_path))
