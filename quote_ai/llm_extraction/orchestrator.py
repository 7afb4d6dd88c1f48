"""
LLM Orchestrator Module
Runs the three-stage extraction protocol over one merged document:

1. basic info (mandatory, no fallback)
2. useful-line annotation (cache, then LLM, then local annotator)
3. format and OCR repair over the useful lines (falls back to a bullet list)
"""

import logging
from typing import Optional

from pydantic import ValidationError

from ..caching import AnnotationCache
from ..config import PipelineConfig
from ..data_ingestion.core.line_merger import split_content_into_chunks
from ..models import Annotation, BasicInfo, ExtractionResult, MergedDocument
from .local_annotator import LocalAnnotator
from .prompts import PromptTemplates, SYSTEM_PROMPT
from .response_models import AnnotationResponse, BasicInfoResponse, FreeTextResponse
from .utils.api_utils import APIManager, LLMCallError, LLMRequest
from .utils.result_parser import ResponseParseError, ResultParser

logger = logging.getLogger(__name__)

ANNOTATION_MODE = "useful-lines:v1"
BULLET = "- "


class BasicInfoExtractionError(Exception):
    """Stage 1 could not produce basic info; the document has no usable result."""


class LLMOrchestrator:
    """Coordinates the LLM stages and their fallbacks for one document at a time.

    Instances hold no per-document state and can be shared between threads;
    the annotation cache is the only shared mutable component.
    """

    def __init__(
        self,
        api_manager: APIManager,
        config: Optional[PipelineConfig] = None,
        cache: Optional[AnnotationCache] = None,
        templates: Optional[PromptTemplates] = None,
        local_annotator: Optional[LocalAnnotator] = None,
    ):
        self.api_manager = api_manager
        self.config = config or PipelineConfig()
        self.cache = cache if cache is not None else AnnotationCache(
            ttl_seconds=self.config.cache_ttl_seconds,
            max_entries=self.config.cache_max_entries,
        )
        self.templates = templates or PromptTemplates(self.config.prompt_dir)
        self.local_annotator = local_annotator or LocalAnnotator()
        self.json_parser = ResultParser()
        self.annotation_parser = ResultParser(annotation_mode=True)

    def run(self, document: MergedDocument, detailed: bool = True) -> ExtractionResult:
        """Run all stages and assemble the result.

        Args:
            document: The merged, line-numbered document
            detailed: When False, stages 2 and 3 are skipped

        Returns:
            ExtractionResult: Basic info plus detailed configuration

        Raises:
            BasicInfoExtractionError: If stage 1 fails
        """
        basic_info = self.extract_basic_info(document)

        if not detailed:
            logger.info("Detailed mode off, skipping annotation and formatting")
            return ExtractionResult(basic_info=basic_info, detailed_config="", annotation=None)

        annotation = self.annotate(document)
        detailed_config = self.format_configuration(document, annotation)
        return ExtractionResult(basic_info=basic_info, detailed_config=detailed_config, annotation=annotation)

    def extract_basic_info(self, document: MergedDocument) -> BasicInfo:
        """Stage 1: quotation-level fields from the (capped) merged text."""
        chunks = split_content_into_chunks(document.plain_text(), self.config.max_basic_info_chars)
        if not chunks:
            raise BasicInfoExtractionError("Document has no content to extract basic info from")
        if len(chunks) > 1:
            logger.info(f"Basic info input capped to first of {len(chunks)} chunks")

        try:
            raw = self._call(self.templates.basic_info(chunks[0]))
            parsed = self.json_parser.parse(raw, BasicInfoResponse.FIELD_KINDS)
            response = BasicInfoResponse.from_parsed(parsed)
        except LLMCallError as e:
            logger.error(f"Basic info extraction failed: {e}")
            raise BasicInfoExtractionError(str(e)) from e
        except (ResponseParseError, ValidationError, ValueError) as e:
            logger.error(f"Basic info response unusable: {e}")
            raise BasicInfoExtractionError(f"Could not read basic info from the AI response: {e}") from e

        basic_info = response.to_basic_info()
        logger.info(
            f"Basic info: category={basic_info.category}, total={basic_info.total_price} {basic_info.currency}"
        )
        return basic_info

    def annotate(self, document: MergedDocument) -> Annotation:
        """Stage 2: useful line numbers. Never raises."""
        rendered = document.render()

        cached = self.cache.get(rendered, ANNOTATION_MODE)
        if cached is not None:
            logger.info(f"Annotation cache hit ({len(cached.useful_line_numbers)} useful lines)")
            annotation = cached.restricted_to(document)
            annotation.source = "cache"
            return annotation

        try:
            annotation = self._annotate_with_llm(document, rendered)
        except (LLMCallError, ResponseParseError, ValidationError, ValueError) as e:
            logger.warning(f"LLM annotation failed, using local annotator: {e}")
            return self.local_annotator.annotate(rendered).restricted_to(document)

        self.cache.put(rendered, ANNOTATION_MODE, annotation)
        logger.info(f"LLM flagged {len(annotation.useful_line_numbers)} of {document.total_lines} lines as useful")
        return annotation

    def _annotate_with_llm(self, document: MergedDocument, rendered: str) -> Annotation:
        raw = self._call(self.templates.annotation(rendered))
        parsed = self.annotation_parser.parse(raw, AnnotationResponse.FIELD_KINDS)
        annotation = AnnotationResponse.from_parsed(parsed).to_annotation()

        valid = annotation.restricted_to(document)
        dropped = len(annotation.useful_line_numbers) - len(valid.useful_line_numbers)
        if dropped:
            logger.debug(f"Dropped {dropped} line numbers not present in the document")
        if valid.is_empty():
            raise ValueError("Annotation contains no valid line numbers")
        return valid

    def format_configuration(self, document: MergedDocument, annotation: Annotation) -> str:
        """Stage 3: clean configuration text from the useful lines. Never raises."""
        lines = [document.get_line(n) for n in annotation.useful_line_numbers]
        lines = [line for line in lines if line is not None]
        if not lines:
            logger.warning("No useful lines found, using full merged text as configuration")
            return document.plain_text()

        try:
            raw = self._call(self.templates.format_lines('\n'.join(line.text for line in lines)))
            return FreeTextResponse.from_raw(raw).text
        except (LLMCallError, ValidationError, ValueError) as e:
            logger.warning(f"Formatting stage failed, using raw useful lines: {e}")
            return '\n'.join(f"{BULLET}{line.text}" for line in lines)

    def _call(self, prompt: str) -> str:
        request = LLMRequest(
            prompt=prompt,
            model_id=self.config.model,
            temperature=self.config.temperature,
            max_tokens=self.config.max_tokens,
            timeout_s=self.config.timeout_seconds,
            system_prompt=SYSTEM_PROMPT,
        )
        return self.api_manager.complete(request)
