"""
LLM Extraction Package
Handles the staged LLM extraction of quotation information.
"""

from .orchestrator import LLMOrchestrator, BasicInfoExtractionError
from .local_annotator import LocalAnnotator

__all__ = ['LLMOrchestrator', 'BasicInfoExtractionError', 'LocalAnnotator']
