import unittest
import json
import logging
import logging.handlers
import sys
import tempfile
from pathlib import Path
from unittest.mock import patch

# Add project root to sys.path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from docweaver.core.config import DEFAULTS, configured_style, load_config, load_style_file
from docweaver.core.logging_config import LOG_FILE_NAME, setup_logging
from docweaver.core.styles import PRESETS, StyleError, WordTemplate


class TestConfig(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.dir = Path(self.tmp.name)

    def tearDown(self):
        self.tmp.cleanup()

    def write(self, name, payload):
        path = self.dir / name
        path.write_text(payload if isinstance(payload, str) else json.dumps(payload), encoding='utf-8')
        return path

    def test_missing_file_gives_defaults(self):
        self.assertEqual(load_config(self.dir / 'none.json'), DEFAULTS)

    def test_values_override_defaults(self):
        path = self.write('config.json', {'default_template': 'academic', 'image_timeout': 2, 'bogus': 1})
        config = load_config(path)
        self.assertEqual(config['default_template'], 'academic')
        self.assertEqual(config['image_timeout'], 2)
        self.assertEqual(config['log_dir'], DEFAULTS['log_dir'])
        self.assertNotIn('bogus', config)

    def test_broken_json_gives_defaults(self):
        path = self.write('config.json', '{not json')
        self.assertEqual(load_config(path), DEFAULTS)

    def test_non_object_gives_defaults(self):
        path = self.write('config.json', [1, 2])
        self.assertEqual(load_config(path), DEFAULTS)

    def test_env_var_selects_file(self):
        path = self.write('custom.json', {'default_template': 'note'})
        with patch.dict('os.environ', {'DOCWEAVER_CONFIG': str(path)}):
            self.assertEqual(load_config()['default_template'], 'note')

    def test_configured_style(self):
        style_path = self.write('style.json', PRESETS[WordTemplate.NOTE].to_dict())
        style = configured_style({'custom_style': str(style_path)})
        self.assertEqual(style, PRESETS[WordTemplate.NOTE])
        self.assertIsNone(configured_style(DEFAULTS))

    def test_invalid_style_file(self):
        style_path = self.write('style.json', {'body': None})
        with self.assertRaises(StyleError):
            load_style_file(style_path)


class TestLogging(unittest.TestCase):
    def setUp(self):
        self.root = logging.getLogger()
        self.saved_handlers = list(self.root.handlers)
        self.saved_level = self.root.level
        self.tmp = tempfile.TemporaryDirectory()

    def tearDown(self):
        for handler in list(self.root.handlers):
            self.root.removeHandler(handler)
            handler.close()
        for handler in self.saved_handlers:
            self.root.addHandler(handler)
        self.root.setLevel(self.saved_level)
        self.tmp.cleanup()

    def test_setup_logging(self):
        log_dir = Path(self.tmp.name) / 'logs'
        log_file = setup_logging(log_dir, debug_mode=True)

        self.assertEqual(log_file, log_dir / LOG_FILE_NAME)
        self.assertEqual(self.root.level, logging.DEBUG)
        rotating = [h for h in self.root.handlers if isinstance(h, logging.handlers.RotatingFileHandler)]
        self.assertEqual(len(rotating), 1)

        logging.getLogger('docweaver.test').info("hello log")
        rotating[0].flush()
        self.assertIn("hello log", log_file.read_text(encoding='utf-8'))

    def test_repeat_setup_does_not_duplicate_handlers(self):
        setup_logging(Path(self.tmp.name), debug_mode=False)
        setup_logging(Path(self.tmp.name), debug_mode=False)
        self.assertEqual(len(self.root.handlers), 2)
        self.assertEqual(self.root.level, logging.INFO)


if __name__ == '__main__':
    unittest.main()
