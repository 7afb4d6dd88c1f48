"""
Quote AI
Extraction pipeline that turns quotation documents into structured records.
"""

__version__ = "0.1.0"
