"""
Caching Package

In-memory annotation cache shared by the extraction pipeline.
"""

from .annotation_cache import AnnotationCache, generate_cache_key

__all__ = ['AnnotationCache', 'generate_cache_key']
