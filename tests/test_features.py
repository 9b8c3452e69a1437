import unittest
import sys
from unittest.mock import MagicMock
from pathlib import Path

# Add project root to sys.path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from docweaver.features.registry import FeatureManager, Feature, FeatureState, FeatureType, Pipeline
from docweaver.features.standard import core_features, normalize_newlines, strip_toc_markers


class TestFeatures(unittest.TestCase):
    def setUp(self):
        self.manager = FeatureManager()

    def test_pipeline_execution(self):
        """Test that a pipeline executes steps in order."""
        pipeline = Pipeline("TestPipeline")

        def step1(content): return content + " Step1"
        def step2(content): return content + " Step2"

        pipeline.add_step(step1)
        pipeline.add_step(step2)

        result = pipeline.run("Start")
        self.assertEqual(result, "Start Step1 Step2")

    def test_pipeline_skips_failing_step(self):
        """A step that raises is logged and its input passed through."""
        pipeline = Pipeline("TestPipeline")

        def broken(content): raise RuntimeError("boom")

        pipeline.add_step(broken)
        pipeline.add_step(str.upper)
        self.assertEqual(pipeline.run("abc"), "ABC")
        self.assertEqual(len(pipeline), 2)

    def test_feature_manager_refresh(self):
        """Test that FeatureManager pulls features from registry."""
        mock_registry = MagicMock()

        # Create a mock plugin that acts as a Feature (Duck Typing)
        mock_plugin = MagicMock()
        mock_plugin.name = "TEST_ALGO"
        mock_plugin.type = FeatureType.ALGORITHM
        mock_plugin.state = FeatureState.STANDARD
        mock_plugin.handler = lambda x: x

        mock_registry.get_all_plugins.return_value = [mock_plugin, object()]

        self.manager._registry = mock_registry
        self.manager.refresh()

        features = self.manager._features
        self.assertEqual(len(features), 1)
        self.assertEqual(features[0].name, "TEST_ALGO")

    def test_refresh_keeps_core_features(self):
        core = Feature("core_step", lambda x: x, FeatureState.STANDARD)
        self.manager.register(core)

        mock_registry = MagicMock()
        mock_registry.get_all_plugins.return_value = [
            Feature("plugin_step", lambda x: x, FeatureState.STANDARD),
        ]
        self.manager._registry = mock_registry
        self.manager.refresh()
        self.manager.refresh()

        self.assertEqual([f.name for f in self.manager._features], ["core_step", "plugin_step"])

    def test_plugin_overrides_feature_by_name(self):
        self.manager.register(Feature("docx", lambda md: b"old", FeatureState.STANDARD,
                                      FeatureType.EXPORT_HANDLER, meta={'extension': 'docx'}))
        mock_registry = MagicMock()
        mock_registry.get_all_plugins.return_value = [
            Feature("docx", lambda md: b"new", FeatureState.STANDARD,
                    FeatureType.EXPORT_HANDLER, meta={'extension': 'docx'}),
        ]
        self.manager._registry = mock_registry
        self.manager.refresh()

        self.assertEqual(self.manager.get_export_handler('DOCX')("x"), b"new")

    def test_handler_lookup(self):
        export = Feature("word", lambda md: b"", FeatureState.STANDARD,
                         FeatureType.EXPORT_HANDLER, meta={'extension': 'docx'})
        importer = Feature("html_import", lambda html: "", FeatureState.STANDARD,
                           FeatureType.IMPORT_HANDLER, meta={'extension': 'html'})
        self.manager.register(export)
        self.manager.register(importer)

        self.assertIs(self.manager.get_export_handler('docx'), export.handler)
        self.assertIs(self.manager.get_export_handler('word'), export.handler)
        self.assertIs(self.manager.get_import_handler('html'), importer.handler)
        self.assertIsNone(self.manager.get_export_handler('html'))
        self.assertIsNone(self.manager.get_import_handler('pdf'))

    def test_build_pipeline(self):
        """Test building a pipeline from registered features."""
        f1 = Feature("F1", lambda x: "1", FeatureState.STANDARD, FeatureType.ALGORITHM)
        f2 = Feature("F2", lambda x: "2", FeatureState.EXPERIMENTAL, FeatureType.ALGORITHM)
        f3 = Feature("EXPORT", lambda x: b"", FeatureState.STANDARD, FeatureType.EXPORT_HANDLER)

        self.manager.register(f1)
        self.manager.register(f2)
        self.manager.register(f3)

        # Standard only
        p_std = self.manager.build_pipeline(enable_experimental=False)
        self.assertEqual(len(p_std), 1)  # Only F1

        # With experimental
        p_exp = self.manager.build_pipeline(enable_experimental=True)
        self.assertEqual(len(p_exp), 2)  # F1 + F2

        self.assertEqual(len(self.manager.get_features_by_type(FeatureType.EXPORT_HANDLER)), 1)


class TestStandardFeatures(unittest.TestCase):
    def test_normalize_newlines(self):
        self.assertEqual(normalize_newlines("a\r\nb\rc\n"), "a\nb\nc\n")

    def test_strip_toc_markers(self):
        text = "[TOC]\n# Title\n<!--TOC_PLACEHOLDER_START-->\n- x\n<!--TOC_PLACEHOLDER_END-->\nBody"
        self.assertEqual(strip_toc_markers(text), "\n# Title\n\nBody")

    def test_inline_toc_text_kept(self):
        self.assertEqual(strip_toc_markers("see [TOC] below"), "see [TOC] below")

    def test_core_pipeline(self):
        manager = FeatureManager()
        for feature in core_features():
            manager.register(feature)
        self.assertEqual(manager.build_pipeline().run("[toc]\r\nText"), "\nText")


if __name__ == '__main__':
    unittest.main()
