import importlib.util
import logging
from pathlib import Path
from typing import Iterable, List, Optional

logger = logging.getLogger(__name__)

# Constants
PLUGIN_FILE_NAME = "plugin.py"
BUNDLED_PLUGIN_DIR = Path(__file__).resolve().parent.parent / "plugins"


def get_plugin_paths(extra_dirs: Optional[Iterable[str]] = None) -> List[Path]:
    """
    Directories to scan for plugins: the bundled plugins first, then any
    extra directories from configuration that exist.
    """
    paths = [BUNDLED_PLUGIN_DIR]
    for entry in extra_dirs or []:
        path = Path(entry).expanduser().resolve()
        if path.is_dir():
            paths.append(path)
        else:
            logger.warning(f"Plugin directory not found: {path}")
    logger.debug(f"Plugin scan paths: {[str(p) for p in paths]}")
    return paths


def load_plugins_from_path(plugin_dir: Path, registry_instance=None) -> int:
    """
    Scan one directory for plugins laid out as plugin_dir/<name>/plugin.py.
    Returns the number of plugin modules found.
    """
    if not plugin_dir.exists():
        logger.warning(f"Plugin directory not found: {plugin_dir}")
        return 0

    logger.info(f"Scanning for plugins in: {plugin_dir}")
    count = 0
    for item in sorted(plugin_dir.iterdir()):
        plugin_path = item / PLUGIN_FILE_NAME
        if item.is_dir() and plugin_path.exists():
            logger.debug(f"Found plugin at {plugin_path}")
            load_single_plugin(item.name, plugin_path, registry_instance)
            count += 1
    logger.info(f"Scanned {plugin_dir}, found {count} plugins.")
    return count


def load_single_plugin(name: str, path: Path, registry_instance=None) -> None:
    """
    Execute one plugin module and register the features and blueprint it exposes.
    A broken plugin is logged and skipped.
    """
    from docweaver.features.registry import PluginRegistry

    registry = registry_instance if registry_instance is not None else PluginRegistry()
    try:
        logger.info(f"Loading plugin '{name}' from {path}")
        spec = importlib.util.spec_from_file_location(f"docweaver_plugin_{name}", str(path))
        if spec is None or spec.loader is None:
            logger.error(f"Cannot create module spec for plugin '{name}'")
            return

        module = importlib.util.module_from_spec(spec)
        spec.loader.exec_module(module)

        if hasattr(module, 'get_features'):
            features = module.get_features() or []
            if not features:
                logger.warning(f"Plugin {name} returned no features.")
            for f in features:
                registry.register(f)
                logger.info(f"Loader: Registered feature '{f.name}' (Type: {f.type}) from {name}")
        else:
            logger.info(f"Loader: No get_features() found in {name}")

        if hasattr(module, 'blueprint'):
            registry.register_blueprint(module.blueprint)
            logger.info(f"Loader: Registered blueprint from {name}")

    except Exception as e:
        logger.error(f"Failed to load plugin '{name}': {e}", exc_info=True)


def load_plugins(registry_instance=None, extra_dirs: Optional[Iterable[str]] = None) -> None:
    """Discover and load every available plugin."""
    for path in get_plugin_paths(extra_dirs):
        load_plugins_from_path(path, registry_instance)
