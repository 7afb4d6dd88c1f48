"""
Unit tests for LLMOrchestrator.
Tests each stage, its fallback and the annotation cache interaction.
"""
import unittest

from llm_helpers import prompts_for, scripted_api_manager
from quote_ai.caching import AnnotationCache
from quote_ai.config import PipelineConfig
from quote_ai.llm_extraction.orchestrator import (
    ANNOTATION_MODE,
    BasicInfoExtractionError,
    LLMOrchestrator,
)
from quote_ai.llm_extraction.prompts.templates import ANNOTATION, BASIC_INFO, FORMAT
from quote_ai.llm_extraction.utils.api_utils import (
    LLMAuthError,
    LLMRateLimitError,
    LLMResponseFormatError,
    LLMServerError,
    LLMTimeoutError,
)
from quote_ai.models import Annotation, MergedDocument, NumberedLine

BASIC_JSON = '{"quotationCategory": "server", "supplier": "ACME Ltd", "totalPrice": 9998, "quantity": 2, "currency": "USD"}'


def make_document(*texts):
    return MergedDocument([NumberedLine(i, text) for i, text in enumerate(texts, start=1)])


class TestLLMOrchestrator(unittest.TestCase):
    """Test cases for LLMOrchestrator."""

    def setUp(self):
        self.config = PipelineConfig(api_key="test-key")
        self.cache = AnnotationCache(ttl_seconds=60, max_entries=10)
        self.document = make_document(
            "ACME Systems Ltd",
            "=== Table Data ===",
            "Part: X100-AB | Description: Server Node | Price: 4999.00 | Qty: 2",
            "Part: MEM-64G | Description: 64GB DDR5 RDIMM | Price: 450 | Qty: 8",
            "Thank you for your business",
        )

    def _orchestrator(self, api_manager):
        return LLMOrchestrator(api_manager, self.config, cache=self.cache)

    def test_full_run(self):
        api = scripted_api_manager(
            basic_info=BASIC_JSON,
            annotation='{"usefulLineNumbers": [3, 4]}',
            format_reply="X100-AB Server Node x2\n64GB DDR5 RDIMM x8",
        )
        result = self._orchestrator(api).run(self.document)

        self.assertEqual(result.basic_info.total_price, 9998)
        self.assertEqual(result.basic_info.unit_price, 4999.0)
        self.assertEqual(result.basic_info.category, "server")
        self.assertEqual(result.annotation.useful_line_numbers, [3, 4])
        self.assertEqual(result.annotation.source, "llm")
        self.assertEqual(result.detailed_config, "X100-AB Server Node x2\n64GB DDR5 RDIMM x8")

        format_prompt = prompts_for(api, FORMAT)[0]
        self.assertIn("Part: X100-AB", format_prompt)
        self.assertNotIn("ACME Systems Ltd", format_prompt)
        self.assertIn("Line 1: ACME Systems Ltd", prompts_for(api, ANNOTATION)[0])

    def test_each_call_uses_configured_parameters(self):
        api = scripted_api_manager(basic_info=BASIC_JSON)
        self._orchestrator(api).run(self.document, detailed=False)

        request = api.complete.call_args.args[0]
        self.assertEqual(request.model_id, self.config.model)
        self.assertEqual(request.temperature, 0.3)
        self.assertEqual(request.max_tokens, 6000)
        self.assertEqual(request.timeout_s, 300.0)

    def test_detailed_mode_off_skips_later_stages(self):
        api = scripted_api_manager(basic_info=BASIC_JSON)
        result = self._orchestrator(api).run(self.document, detailed=False)

        self.assertEqual(result.detailed_config, "")
        self.assertIsNone(result.annotation)
        self.assertEqual(api.complete.call_count, 1)

    def test_basic_info_call_failure_raises(self):
        for error in [LLMTimeoutError(), LLMAuthError(), LLMRateLimitError(), LLMServerError()]:
            api = scripted_api_manager(basic_info=error)
            with self.assertRaises(BasicInfoExtractionError):
                self._orchestrator(api).run(self.document)

    def test_unparseable_basic_info_raises(self):
        api = scripted_api_manager(basic_info="Sorry, I cannot help with that.")
        with self.assertRaises(BasicInfoExtractionError):
            self._orchestrator(api).extract_basic_info(self.document)

    def test_basic_info_input_is_capped(self):
        self.config.max_basic_info_chars = 40
        api = scripted_api_manager(basic_info=BASIC_JSON)
        self._orchestrator(api).extract_basic_info(self.document)

        prompt = prompts_for(api, BASIC_INFO)[0]
        self.assertIn("ACME Systems Ltd", prompt)
        self.assertNotIn("X100-AB", prompt)

    def test_dangling_line_numbers_are_dropped(self):
        api = scripted_api_manager(annotation='{"usefulLineNumbers": [3, 42, 0]}')
        annotation = self._orchestrator(api).annotate(self.document)
        self.assertEqual(annotation.useful_line_numbers, [3])

    def test_annotation_failure_falls_back_to_local(self):
        for reply in [LLMTimeoutError(), "no idea", '{"usefulLineNumbers": []}', '{"usefulLineNumbers": [99]}']:
            api = scripted_api_manager(annotation=reply)
            annotation = self._orchestrator(api).annotate(self.document)
            self.assertEqual(annotation.source, "local")
            self.assertEqual(annotation.useful_line_numbers, [3, 4])
        self.assertEqual(len(self.cache), 0)

    def test_annotation_number_list_reply(self):
        api = scripted_api_manager(annotation="3-4")
        annotation = self._orchestrator(api).annotate(self.document)
        self.assertEqual(annotation.useful_line_numbers, [3, 4])

    def test_annotation_cache_hit_skips_llm(self):
        api = scripted_api_manager(annotation='{"usefulLineNumbers": [3]}')
        orchestrator = self._orchestrator(api)

        first = orchestrator.annotate(self.document)
        second = orchestrator.annotate(self.document)

        self.assertEqual(first.source, "llm")
        self.assertEqual(second.source, "cache")
        self.assertEqual(second.useful_line_numbers, [3])
        self.assertEqual(len(prompts_for(api, ANNOTATION)), 1)
        self.assertEqual(self.cache.get(self.document.render(), ANNOTATION_MODE).source, "llm")

    def test_mutating_result_does_not_change_cache(self):
        api = scripted_api_manager(basic_info=BASIC_JSON, annotation='{"usefulLineNumbers": [3]}',
                                   format_reply="X100-AB Server Node x2")
        result = self._orchestrator(api).run(self.document)
        result.annotation.useful_line_numbers.append(4)

        self.assertEqual(self.cache.get(self.document.render(), ANNOTATION_MODE).useful_line_numbers, [3])

    def test_malformed_categories_keep_llm_line_numbers(self):
        api = scripted_api_manager(
            annotation='{"usefulLineNumbers": [3, 4], "categories": {"server": [3], "misc": null}}'
        )
        annotation = self._orchestrator(api).annotate(self.document)

        self.assertEqual(annotation.source, "llm")
        self.assertEqual(annotation.useful_line_numbers, [3, 4])
        self.assertEqual(annotation.categories, {"server": [3]})

    def test_cache_is_keyed_by_document_content(self):
        self.cache.put(self.document.render(), ANNOTATION_MODE, Annotation([4]))
        other = make_document("Part: Z9-XX | Qty: 1")
        api = scripted_api_manager(annotation='{"usefulLineNumbers": [1]}')

        self.assertEqual(self._orchestrator(api).annotate(self.document).useful_line_numbers, [4])
        self.assertEqual(self._orchestrator(api).annotate(other).useful_line_numbers, [1])

    def test_format_failure_falls_back_to_bullets(self):
        for error in [LLMServerError(), LLMResponseFormatError()]:
            api = scripted_api_manager(format_reply=error)
            text = self._orchestrator(api).format_configuration(self.document, Annotation([4, 3, 17]))
            self.assertEqual(
                text,
                "- Part: X100-AB | Description: Server Node | Price: 4999.00 | Qty: 2\n"
                "- Part: MEM-64G | Description: 64GB DDR5 RDIMM | Price: 450 | Qty: 8"
            )

    def test_blank_format_reply_falls_back_to_bullets(self):
        api = scripted_api_manager(format_reply="```\n\n```")
        text = self._orchestrator(api).format_configuration(self.document, Annotation([3]))
        self.assertEqual(text, "- Part: X100-AB | Description: Server Node | Price: 4999.00 | Qty: 2")

    def test_no_useful_lines_uses_full_merged_text(self):
        api = scripted_api_manager()
        text = self._orchestrator(api).format_configuration(self.document, Annotation([]))
        self.assertEqual(text, self.document.plain_text())
        api.complete.assert_not_called()

    def test_local_annotator_finding_nothing_degrades_to_full_text(self):
        document = make_document("Dear customer", "Best regards")
        api = scripted_api_manager(basic_info=BASIC_JSON, annotation=LLMTimeoutError())
        result = self._orchestrator(api).run(document)

        self.assertIsNotNone(result.annotation)
        self.assertTrue(result.annotation.is_empty())
        self.assertEqual(result.detailed_config, "Dear customer\nBest regards")

    def test_default_cache_is_built_from_config(self):
        config = PipelineConfig(cache_ttl_seconds=5, cache_max_entries=2)
        orchestrator = LLMOrchestrator(scripted_api_manager(), config)
        self.assertEqual(orchestrator.cache.ttl_seconds, 5)
        self.assertEqual(orchestrator.cache.max_entries, 2)


if __name__ == '__main__':
    unittest.main()
