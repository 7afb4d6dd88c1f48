"""
Shared helpers for tests that script LLM responses per stage.
"""
from unittest.mock import MagicMock

from quote_ai.llm_extraction.prompts.templates import ANNOTATION, BASIC_INFO, DEFAULT_TEMPLATES, FORMAT

STAGE_MARKERS = {
    stage: DEFAULT_TEMPLATES[stage].split('\n', 1)[0]
    for stage in (BASIC_INFO, ANNOTATION, FORMAT)
}


def stage_of(prompt):
    for stage, marker in STAGE_MARKERS.items():
        if prompt.startswith(marker):
            return stage
    raise AssertionError(f"Unknown prompt: {prompt[:60]}")


def scripted_api_manager(basic_info=None, annotation=None, format_reply=None):
    """Build a mock APIManager whose complete() answers by stage.

    Each reply is a string, an exception instance (raised), or a callable
    taking the request.
    """
    replies = {BASIC_INFO: basic_info, ANNOTATION: annotation, FORMAT: format_reply}
    api_manager = MagicMock()

    def complete(request):
        reply = replies[stage_of(request.prompt)]
        if isinstance(reply, Exception):
            raise reply
        if callable(reply):
            return reply(request)
        if reply is None:
            raise AssertionError(f"No scripted reply for stage {stage_of(request.prompt)}")
        return reply

    api_manager.complete.side_effect = complete
    return api_manager


def prompts_for(api_manager, stage):
    return [call.args[0].prompt for call in api_manager.complete.call_args_list
            if stage_of(call.args[0].prompt) == stage]
