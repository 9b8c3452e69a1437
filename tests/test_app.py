import unittest
import io
import sys
import tempfile
from pathlib import Path
from unittest.mock import patch

# Add project root to sys.path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from docx import Document
from PIL import Image

from docweaver.app import FEATURES, app
from docweaver.core.styles import PRESETS, WordTemplate
from docweaver.version_info import __version__

DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"


class TestExportApi(unittest.TestCase):
    def setUp(self):
        app.config['TESTING'] = True
        self.client = app.test_client()

    def test_version(self):
        response = self.client.get('/api/version')
        self.assertEqual(response.get_json(), {'version': __version__})

    def test_templates(self):
        response = self.client.get('/api/templates')
        data = response.get_json()
        self.assertEqual(set(data), {'standard', 'academic', 'note'})
        self.assertTrue(data['academic']['table']['isThreeLineTable'])

    def test_export_docx(self):
        response = self.client.post('/api/export/docx', json={
            'markdown': "# Report\n\nBody text",
            'template': 'academic',
        })
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.mimetype, DOCX_MIME)
        self.assertIn('Doc_academic_', response.headers['Content-Disposition'])

        doc = Document(io.BytesIO(response.data))
        self.assertEqual([p.text for p in doc.paragraphs], ['Report', 'Body text'])
        self.assertEqual(doc.paragraphs[1].runs[0].font.name, PRESETS[WordTemplate.ACADEMIC].body.font_face)

    def test_export_custom_style(self):
        style = PRESETS[WordTemplate.NOTE].to_dict()
        style['body']['fontFace'] = 'Courier New'
        response = self.client.post('/api/export/docx', json={
            'markdown': "Custom body",
            'template': 'custom',
            'style': style,
        })
        self.assertEqual(response.status_code, 200)
        doc = Document(io.BytesIO(response.data))
        self.assertEqual(doc.paragraphs[0].runs[0].font.name, 'Courier New')

    def test_export_runs_preprocessing(self):
        response = self.client.post('/api/export/docx', json={'markdown': "[TOC]\r\nOnly line"})
        doc = Document(io.BytesIO(response.data))
        self.assertEqual([p.text for p in doc.paragraphs], ['Only line'])

    def test_invalid_style(self):
        response = self.client.post('/api/export/docx', json={
            'markdown': "x",
            'template': 'custom',
            'style': {'body': {'fontFace': 'Arial'}},
        })
        self.assertEqual(response.status_code, 400)
        self.assertIn('Invalid style', response.get_json()['error'])

    def test_missing_markdown(self):
        response = self.client.post('/api/export/docx', json={'template': 'standard'})
        self.assertEqual(response.status_code, 400)

    def test_unknown_format(self):
        response = self.client.post('/api/export/epub', json={'markdown': 'x'})
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.get_json()['code'], 'MISSING_PLUGIN')

    @patch('docweaver.app.MAX_FILE_SIZE', 4)
    def test_too_large(self):
        response = self.client.post('/api/export/docx', json={'markdown': 'abcdef'})
        self.assertEqual(response.status_code, 413)

    def test_server_files_not_embedded(self):
        with tempfile.TemporaryDirectory() as tmp:
            picture = Path(tmp) / 'private.png'
            Image.new('RGB', (16, 16)).save(picture)
            response = self.client.post('/api/export/docx', json={
                'markdown': f"![x]({picture})\n\n![y](private.png)",
            })
        self.assertEqual(response.status_code, 200)
        doc = Document(io.BytesIO(response.data))
        self.assertEqual(len(doc.inline_shapes), 0)
        texts = [p.text for p in doc.paragraphs]
        self.assertIn('[Image: x - Download Failed]', texts)
        self.assertIn('[Image: y - Download Failed]', texts)

    def test_debug_features(self):
        data = self.client.get('/api/debug/features').get_json()
        names = {f['name'] for f in data['features']}
        self.assertTrue({'docx', 'docx_import', 'html_import', 'normalize_newlines'} <= names)


class TestImportApi(unittest.TestCase):
    def setUp(self):
        app.config['TESTING'] = True
        self.client = app.test_client()

    def test_import_html_json(self):
        response = self.client.post('/api/import/html', json={'html': '<h2>Hi</h2><p>A <b>bold</b> move</p>'})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()['markdown'], '## Hi\n\nA **bold** move')

    def test_import_docx_upload(self):
        source = Document()
        source.add_heading('Imported', level=1)
        source.add_paragraph('Some text')
        buffer = io.BytesIO()
        source.save(buffer)
        buffer.seek(0)

        response = self.client.post(
            '/api/import/docx',
            data={'file': (buffer, 'input.docx')},
            content_type='multipart/form-data',
        )
        self.assertEqual(response.status_code, 200)
        markdown = response.get_json()['markdown']
        self.assertIn('Imported', markdown)
        self.assertIn('Some text', markdown)

    def test_import_uses_registered_handler(self):
        with patch.object(FEATURES, 'get_import_handler', return_value=lambda payload: 'from plugin') as lookup:
            response = self.client.post('/api/import/HTML', json={'html': '<p>x</p>'})
        lookup.assert_called_once_with('html')
        self.assertEqual(response.get_json(), {'markdown': 'from plugin'})

    def test_import_empty(self):
        response = self.client.post('/api/import/html', json={})
        self.assertEqual(response.status_code, 400)

    def test_import_unsupported(self):
        response = self.client.post('/api/import/pdf', json={'html': '<p>x</p>'})
        self.assertEqual(response.status_code, 404)

    def test_import_corrupt_docx(self):
        response = self.client.post(
            '/api/import/docx',
            data={'file': (io.BytesIO(b'not a zip'), 'bad.docx')},
            content_type='multipart/form-data',
        )
        self.assertEqual(response.status_code, 500)


if __name__ == '__main__':
    unittest.main()
