"""
LLM Utilities Package
Contains utility modules for API handling and result parsing.
"""

from .api_utils import APIManager, LLMRequest, LLMCallError
from .result_parser import ResultParser, ResponseParseError

__all__ = ['APIManager', 'LLMRequest', 'LLMCallError', 'ResultParser', 'ResponseParseError']
