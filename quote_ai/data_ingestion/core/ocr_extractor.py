"""
Image OCR Extractor Module
Pulls embedded raster images out of an Office Open XML package (xlsx/docx),
preprocesses them and runs bilingual OCR.

Every image is written to its own temporary directory; the original and the
processed copy are removed when OCR finishes, whatever the outcome.
"""

import re
import logging
import tempfile
import zipfile
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import List, Optional, Tuple, Union

import pytesseract
from PIL import Image, ImageFilter, ImageOps
from pytesseract import Output

from ...config import PipelineConfig
from ...models import OCRResult

logger = logging.getLogger(__name__)


class ImageOCRExtractor:
    """Extracts text from images embedded in a spreadsheet archive."""

    MEDIA_DIRECTORIES = ('xl/media', 'xl/embeddings', 'xl/drawings', 'word/media')
    SUPPORTED_IMAGE_TYPES = {'.png', '.jpg', '.jpeg', '.bmp', '.tif', '.tiff'}

    def __init__(self, config: Optional[PipelineConfig] = None):
        self.config = config or PipelineConfig()
        if self.config.tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = self.config.tesseract_cmd

    def extract(self, file_path: Union[str, Path]) -> List[OCRResult]:
        """Run OCR over every embedded image, in archive order.

        Args:
            file_path: Path to the spreadsheet (or word) archive

        Returns:
            List[OCRResult]: One result per image; failed images have success=False
        """
        file_path = Path(file_path) if isinstance(file_path, str) else file_path
        images = self.list_images(file_path)
        if not images:
            logger.info(f"No embedded images found in {file_path.name}")
            return []

        logger.info(f"Running OCR on {len(images)} images from {file_path.name}")
        workers = max(1, min(self.config.ocr_max_workers, len(images)))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            # map() keeps the original image order
            results = list(executor.map(self._process_image, images))

        succeeded = sum(1 for r in results if r.success)
        logger.info(f"OCR complete: {succeeded}/{len(results)} images recognized")
        return results

    def list_images(self, file_path: Path) -> List[Tuple[str, bytes]]:
        """Collect (entry name, bytes) for each supported image in the archive."""
        if not zipfile.is_zipfile(file_path):
            logger.debug(f"{file_path.name} is not a zip archive, skipping image scan")
            return []

        images = []
        try:
            with zipfile.ZipFile(file_path) as archive:
                for media_dir in self.MEDIA_DIRECTORIES:
                    prefix = media_dir + '/'
                    for info in archive.infolist():
                        if info.is_dir() or not info.filename.startswith(prefix):
                            continue
                        if not self.is_image_file(info.filename):
                            continue
                        images.append((info.filename, archive.read(info)))
        except (zipfile.BadZipFile, OSError) as e:
            logger.error(f"Could not read images from {file_path.name}: {e}")
            return []
        return images

    def is_image_file(self, filename: str) -> bool:
        return Path(filename.lower()).suffix in self.SUPPORTED_IMAGE_TYPES

    def _process_image(self, image: Tuple[str, bytes]) -> OCRResult:
        name, data = image
        try:
            with tempfile.TemporaryDirectory(prefix='quote_ocr_', dir=self.config.temp_dir) as work_dir:
                original_path = Path(work_dir) / f"original{Path(name).suffix.lower()}"
                original_path.write_bytes(data)

                processed_path = self.preprocess_image(original_path)
                text, confidence = self.perform_ocr(processed_path)

            logger.debug(f"OCR {name}: {len(text)} chars, confidence {confidence:.0f}%")
            return OCRResult(
                text=text,
                confidence=confidence,
                original_image_name=name,
                size_bytes=len(data),
                success=True,
            )
        except Exception as e:
            logger.warning(f"OCR failed for {name}: {e}")
            return OCRResult(
                text='',
                confidence=0.0,
                original_image_name=name,
                size_bytes=len(data),
                success=False,
                error=str(e),
            )

    def preprocess_image(self, image_path: Path) -> Path:
        """Upscale small images, sharpen and normalize contrast.

        Returns the path of the processed copy (next to the original).
        """
        output_path = image_path.with_name(f"{image_path.stem}_processed.png")
        with Image.open(image_path) as img:
            img = img.convert('L')
            target_height = self.config.ocr_target_height
            if img.height < target_height:
                width = max(1, round(img.width * target_height / img.height))
                img = img.resize((width, target_height), Image.Resampling.LANCZOS)
            img = img.filter(ImageFilter.SHARPEN)
            img = ImageOps.autocontrast(img)
            img.save(output_path, format='PNG')
        return output_path

    def perform_ocr(self, image_path: Path) -> Tuple[str, float]:
        """Run Tesseract; confidence is the mean word confidence (0-100)."""
        langs = self.config.ocr_languages
        with Image.open(image_path) as img:
            data = pytesseract.image_to_data(img, lang=langs, output_type=Output.DICT)
            text = pytesseract.image_to_string(img, lang=langs) or ''

        confidences = []
        for value in data.get('conf', []):
            try:
                conf = float(value)
            except (TypeError, ValueError):
                continue
            if conf >= 0:
                confidences.append(conf)
        confidence = sum(confidences) / len(confidences) if confidences else 0.0
        return text.strip(), min(max(confidence, 0.0), 100.0)


class OCRQualityAssessor:
    """Decides whether a set of OCR results carries product information or noise.

    An image counts as meaningful when its text matches a product-content
    pattern, or is long and recognized with high confidence. The set is
    meaningful when both the share of meaningful images and their average
    confidence exceed the configured cutoffs.
    """

    MODEL_PATTERN = re.compile(
        r'[A-Z0-9]{3,}[-_][A-Z0-9]{2,}|[A-Z]{2,}\d{3,}|\d+GB|\d+TB|\d+MHz|\d+GHz', re.IGNORECASE
    )
    PRICE_PATTERN = re.compile(r'[$€£¥]\s?[\d,]+\.?\d*')
    HARDWARE_PATTERN = re.compile(r'(CPU|Memory|Storage|Disk|Network|Processor|RAM|SSD|HDD)', re.IGNORECASE)
    QUANTITY_PATTERN = re.compile(r'\d+\s*(x|×)\s*[A-Z0-9]', re.IGNORECASE)

    def __init__(self, config: Optional[PipelineConfig] = None):
        self.config = config or PipelineConfig()

    def is_image_meaningful(self, result: OCRResult) -> bool:
        text = result.text or ''
        return bool(
            self.MODEL_PATTERN.search(text)
            or self.PRICE_PATTERN.search(text)
            or self.HARDWARE_PATTERN.search(text)
            or self.QUANTITY_PATTERN.search(text)
            or (len(text) > self.config.ocr_long_text_chars
                and result.confidence > self.config.ocr_long_text_confidence)
        )

    def is_meaningful(self, results: List[OCRResult]) -> bool:
        if not results:
            return False

        meaningful = [r for r in results if self.is_image_meaningful(r)]
        ratio = len(meaningful) / len(results)
        avg_confidence = (
            sum(r.confidence for r in meaningful) / len(meaningful) if meaningful else 0.0
        )
        logger.info(
            f"OCR quality: {len(meaningful)}/{len(results)} meaningful images, "
            f"average confidence {avg_confidence:.0f}%"
        )
        return (ratio > self.config.ocr_min_meaningful_ratio
                and avg_confidence > self.config.ocr_min_avg_confidence)


def format_ocr_text(text: str) -> str:
    """Tidy raw OCR output.

    Rejoins words, number+unit pairs and model codes that OCR split across
    lines, then strips every line and drops blank ones.
    """
    if not text:
        return ''
    text = re.sub(r'([a-zA-Z])\n([a-z])', r'\1\2', text)
    text = re.sub(r'(\d+)\n(GB|TB|MHz|GHz|W|V|A)\b', r'\1\2', text)
    text = re.sub(r'([A-Z0-9]+)\n([A-Z0-9]+)\b', r'\1\2', text)
    lines = [line.strip() for line in text.split('\n')]
    return '\n'.join(line for line in lines if line)
