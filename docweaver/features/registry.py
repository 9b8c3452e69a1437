from enum import Enum, auto
from typing import Callable, List, Optional, Any, Dict
import logging

logger = logging.getLogger(__name__)


class FeatureState(Enum):
    STANDARD = auto()
    EXPERIMENTAL = auto()


class FeatureType(Enum):
    ALGORITHM = auto()  # Markdown pre-processing step (str -> str)
    EXPORT_HANDLER = auto()  # Markdown -> document bytes
    IMPORT_HANDLER = auto()  # external document -> Markdown


class Feature:
    def __init__(self, name: str, handler: Callable[..., Any], state: FeatureState,
                 feature_type: FeatureType = FeatureType.ALGORITHM, meta: Dict = None):
        self.name = name
        self.handler = handler
        self.state = state
        self.type = feature_type
        self.meta = meta or {}

    def __repr__(self):
        return f"<Feature {self.name} ({self.type.name}, {self.state.name})>"


class Pipeline:
    """
    Ordered Markdown pre-processing steps run before export.
    A failing step is logged and skipped; the content it received is passed on.
    """
    def __init__(self, name: str):
        self.name = name
        self._steps: List[Callable[[str], str]] = []

    def add_step(self, handler: Callable[[str], str]):
        self._steps.append(handler)

    def run(self, content: str) -> str:
        """Execute the pipeline on the content."""
        for step in self._steps:
            try:
                content = step(content)
            except Exception as e:
                logger.error(f"Pipeline {self.name} step {getattr(step, '__name__', 'unknown')} failed: {e}")
        return content

    def __iter__(self):
        return iter(self._steps)

    def __len__(self):
        return len(self._steps)


class PluginRegistry:
    """
    Singleton registry holding every feature and Flask blueprint contributed
    by loaded plugins.
    """
    _instance = None
    _plugins: List[Any] = []
    _blueprints: List[Any] = []

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(PluginRegistry, cls).__new__(cls)
            cls._instance._plugins = []
            cls._instance._blueprints = []
        return cls._instance

    def register(self, plugin_or_feature: Any):
        """Register a feature; duplicates are ignored."""
        if plugin_or_feature not in self._plugins:
            self._plugins.append(plugin_or_feature)
            logger.info(f"PluginRegistry: Registered {plugin_or_feature}")

    def get_all_plugins(self) -> List[Any]:
        return self._plugins

    def register_blueprint(self, bp: Any):
        """Register a Flask Blueprint."""
        if bp not in self._blueprints:
            self._blueprints.append(bp)
            logger.info(f"PluginRegistry: Registered blueprint {bp.name}")

    def register_blueprints(self, app):
        """Register all collected blueprints with the Flask app."""
        for bp in self._blueprints:
            if bp.name in app.blueprints:
                continue
            try:
                app.register_blueprint(bp)
                logger.info(f"Registered blueprint: {bp.name}")
            except Exception as e:
                logger.error(f"Failed to register blueprint {bp.name}: {e}")


class FeatureManager:
    """
    Facade that aggregates features from the PluginRegistry and builds the
    export pre-processing Pipeline.
    """
    def __init__(self, registry: Optional[Any] = None):
        self._features: List[Feature] = []
        self._core: List[Feature] = []
        self._registry = registry

    def register(self, feature: Feature):
        """Register a core feature; core features survive refresh()."""
        self._core.append(feature)
        self._features.append(feature)

    def refresh(self):
        """Rebuild the feature list: core features first, then plugin features."""
        self._features = list(self._core)
        if not self._registry:
            logger.warning("FeatureManager: No registry attached, skipping refresh.")
            return

        for plugin in self._registry.get_all_plugins():
            # Duck typing survives plugins executed from file paths
            if not (hasattr(plugin, 'name') and hasattr(plugin, 'type') and hasattr(plugin, 'handler')):
                logger.debug(f"FeatureManager: Ignoring non-feature registry entry {plugin!r}")
                continue

            existing_idx = next((i for i, f in enumerate(self._features) if f.name == plugin.name), -1)
            if existing_idx >= 0:
                self._features[existing_idx] = plugin
                logger.warning(f"FeatureManager: Overwrote existing feature '{plugin.name}'")
            else:
                self._features.append(plugin)
                logger.debug(f"Registered plugin feature: {plugin.name}")

        logger.info(f"FeatureManager: Loaded features. Total: {len(self._features)}")

    def _find_handler(self, feature_type: FeatureType, format_ext: str) -> Optional[Callable]:
        for feature in self._features:
            if feature.type.name != feature_type.name:
                continue
            if feature.meta.get('extension') == format_ext or feature.name == format_ext:
                logger.debug(f"FeatureManager: Found {feature_type.name} for {format_ext} ({feature.name})")
                return feature.handler
        logger.warning(f"FeatureManager: No {feature_type.name} for {format_ext}. Available: {[f.name for f in self._features]}")
        return None

    def get_export_handler(self, format_ext: str) -> Optional[Callable]:
        """Export handler for a file extension, e.g. 'docx'."""
        return self._find_handler(FeatureType.EXPORT_HANDLER, format_ext.lower())

    def get_import_handler(self, format_ext: str) -> Optional[Callable]:
        """Import handler for a file extension, e.g. 'html' or 'docx'."""
        return self._find_handler(FeatureType.IMPORT_HANDLER, format_ext.lower())

    def build_pipeline(self, enable_experimental: bool = False) -> Pipeline:
        """Pre-processing pipeline in registration order: core features first, then plugins."""
        pipeline = Pipeline("ExportPipeline")
        for f in self._features:
            if f.type != FeatureType.ALGORITHM:
                continue
            if f.state == FeatureState.STANDARD or (enable_experimental and f.state == FeatureState.EXPERIMENTAL):
                pipeline.add_step(f.handler)
        return pipeline

    def get_features_by_type(self, feature_type: FeatureType) -> List[Feature]:
        features = [f for f in self._features if f.type == feature_type]
        logger.debug(f"FeatureManager: Found {len(features)} features of type {feature_type}")
        return features
