"""
Unit tests for ImageOCRExtractor, OCRQualityAssessor and format_ocr_text.
Tesseract is mocked; images are generated with Pillow.
"""
import io
import os
import shutil
import tempfile
import unittest
import zipfile
from pathlib import Path
from unittest.mock import patch

from PIL import Image

from quote_ai.config import PipelineConfig
from quote_ai.data_ingestion.core.ocr_extractor import (
    ImageOCRExtractor,
    OCRQualityAssessor,
    format_ocr_text,
)
from quote_ai.models import OCRResult


def _png_bytes(width=40, height=20):
    buffer = io.BytesIO()
    Image.new('RGB', (width, height), color='white').save(buffer, format='PNG')
    return buffer.getvalue()


class TestImageOCRExtractor(unittest.TestCase):
    """Test cases for ImageOCRExtractor."""

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.ocr_temp = os.path.join(self.temp_dir, 'ocr')
        os.makedirs(self.ocr_temp)
        self.config = PipelineConfig(temp_dir=self.ocr_temp, ocr_target_height=60, ocr_max_workers=2)
        self.extractor = ImageOCRExtractor(self.config)

        self.archive = Path(self.temp_dir) / 'quote.xlsx'
        with zipfile.ZipFile(self.archive, 'w') as zf:
            zf.writestr('xl/workbook.xml', '<workbook/>')
            zf.writestr('xl/media/image1.png', _png_bytes())
            zf.writestr('xl/media/notes.txt', 'not an image')
            zf.writestr('xl/drawings/image2.png', _png_bytes())
            zf.writestr('docProps/thumbnail.png', _png_bytes())

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_list_images_scans_media_directories_only(self):
        names = [name for name, _ in self.extractor.list_images(self.archive)]
        self.assertEqual(names, ['xl/media/image1.png', 'xl/drawings/image2.png'])

    def test_non_zip_file_yields_no_results(self):
        plain = Path(self.temp_dir) / 'quote.csv'
        plain.write_text('a,b\n')
        self.assertEqual(self.extractor.extract(plain), [])

    @patch('quote_ai.data_ingestion.core.ocr_extractor.pytesseract')
    def test_extract_returns_ordered_results_and_cleans_up(self, mock_tesseract):
        mock_tesseract.image_to_data.return_value = {'conf': ['-1', '80', '90', 'x']}
        mock_tesseract.image_to_string.return_value = '  CPU 2x Xeon 6430  \n'

        results = self.extractor.extract(self.archive)

        self.assertEqual([r.original_image_name for r in results],
                         ['xl/media/image1.png', 'xl/drawings/image2.png'])
        for result in results:
            self.assertTrue(result.success)
            self.assertEqual(result.text, 'CPU 2x Xeon 6430')
            self.assertAlmostEqual(result.confidence, 85.0)
            self.assertGreater(result.size_bytes, 0)
        self.assertEqual(os.listdir(self.ocr_temp), [])

    @patch('quote_ai.data_ingestion.core.ocr_extractor.pytesseract')
    def test_single_image_failure_does_not_abort_others(self, mock_tesseract):
        mock_tesseract.image_to_data.side_effect = [RuntimeError("tesseract crashed"), {'conf': [70]}]
        mock_tesseract.image_to_string.return_value = 'SSD 960GB'
        self.config.ocr_max_workers = 1
        extractor = ImageOCRExtractor(self.config)

        results = extractor.extract(self.archive)

        self.assertFalse(results[0].success)
        self.assertIn('tesseract crashed', results[0].error)
        self.assertTrue(results[1].success)
        self.assertEqual(results[1].text, 'SSD 960GB')
        self.assertEqual(os.listdir(self.ocr_temp), [])

    def test_preprocess_upscales_small_images(self):
        source = Path(self.ocr_temp) / 'small.png'
        source.write_bytes(_png_bytes(40, 20))

        processed = self.extractor.preprocess_image(source)

        with Image.open(processed) as img:
            self.assertEqual(img.height, 60)
            self.assertEqual(img.width, 120)
        self.assertTrue(source.exists())


class TestOCRQualityAssessor(unittest.TestCase):
    """Test cases for OCRQualityAssessor."""

    def setUp(self):
        self.assessor = OCRQualityAssessor(PipelineConfig())

    def _result(self, text, confidence):
        return OCRResult(text=text, confidence=confidence, original_image_name='img.png',
                         size_bytes=10, success=True)

    def test_product_content_is_meaningful(self):
        results = [
            self._result('HPE DL380 Gen11 2x 32GB', 85),
            self._result('Total $12,500.00', 75),
        ]
        self.assertTrue(self.assessor.is_meaningful(results))

    def test_noise_is_not_meaningful(self):
        results = [self._result('~~ ,. ;', 40), self._result('logo', 90)]
        self.assertFalse(self.assessor.is_meaningful(results))

    def test_low_confidence_matches_are_not_meaningful(self):
        results = [self._result('Memory 64GB', 30)]
        self.assertFalse(self.assessor.is_meaningful(results))

    def test_empty_results(self):
        self.assertFalse(self.assessor.is_meaningful([]))

    def test_thresholds_come_from_config(self):
        assessor = OCRQualityAssessor(PipelineConfig(ocr_min_avg_confidence=20.0))
        self.assertTrue(assessor.is_meaningful([self._result('Memory 64GB', 30)]))


class TestFormatOCRText(unittest.TestCase):
    """Test cases for format_ocr_text."""

    def test_rejoins_broken_lines(self):
        self.assertEqual(format_ocr_text('Proces\nsor'), 'Processor')
        self.assertEqual(format_ocr_text('Memory 64\nGB'), 'Memory 64GB')

    def test_strips_and_drops_blank_lines(self):
        self.assertEqual(format_ocr_text('  Disk 2TB  \n\n\n  RAID 5 \n'), 'Disk 2TB\nRAID 5')

    def test_empty_text(self):
        self.assertEqual(format_ocr_text(''), '')


if __name__ == '__main__':
    unittest.main()
