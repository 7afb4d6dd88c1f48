from .templates import PromptTemplates, SYSTEM_PROMPT

__all__ = ['PromptTemplates', 'SYSTEM_PROMPT']
