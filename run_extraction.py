#!/usr/bin/env python3
"""
Run the quotation extraction pipeline.

This script provides a simple command-line interface to:
1. Extract tables, embedded-image text and raw text from quotation files
2. Run the three LLM stages (basic info, useful lines, formatting)
3. Save one JSON result per document

Usage:
    python run_extraction.py quotes/server_quote.xlsx --output-dir ./outputs
    python run_extraction.py offer.pdf --text-file offer.pdf offer.txt --no-detailed
"""

import argparse
import logging
import os
import sys
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

os.makedirs('logs', exist_ok=True)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.FileHandler('logs/extraction.log', mode='a'),
        logging.StreamHandler()
    ]
)
logger = logging.getLogger(__name__)


def main():
    """Main entry point for the extraction pipeline."""
    parser = argparse.ArgumentParser(description='Run the quotation extraction pipeline')
    parser.add_argument(
        'files',
        nargs='+',
        help='Quotation files to process (.xlsx, .xls, .csv, .txt, or .pdf/.doc/.docx with --text-file)'
    )
    parser.add_argument(
        '--output-dir',
        type=str,
        default='./outputs',
        help='Directory to save extraction outputs'
    )
    parser.add_argument(
        '--no-detailed',
        action='store_true',
        help='Only extract basic info (skip useful-line annotation and formatting)'
    )
    parser.add_argument(
        '--text-file',
        nargs=2,
        action='append',
        default=[],
        metavar=('DOCUMENT', 'TEXT_FILE'),
        help='Pre-extracted text for a PDF/Word document; may be repeated'
    )
    parser.add_argument(
        '--workers',
        type=int,
        default=4,
        help='Number of documents to process concurrently'
    )

    args = parser.parse_args()

    # Import here so logging is configured before package loggers are created
    from quote_ai.config import PipelineConfig
    from quote_ai.document_processor import DocumentProcessor, JsonFileSink
    from quote_ai.llm_extraction import LLMOrchestrator
    from quote_ai.llm_extraction.utils import APIManager

    try:
        config = PipelineConfig.from_env()
        api_manager = APIManager(
            api_key=config.api_key,
            base_url=config.base_url,
            max_rpm=config.max_requests_per_minute,
        )
        logger.info(f"Using LLM endpoint: {api_manager.get_provider_info()}")
        sink = JsonFileSink(args.output_dir)
        processor = DocumentProcessor(
            LLMOrchestrator(api_manager, config),
            config,
            sink=sink,
        )

        extracted_texts = {}
        for document, text_file in args.text_file:
            extracted_texts[document] = Path(text_file).read_text(encoding='utf-8')

        outcomes = processor.process_many(
            args.files,
            detailed=not args.no_detailed,
            extracted_texts=extracted_texts,
            max_workers=args.workers,
        )
    except Exception as e:
        logger.error(f"Failed to run extraction: {str(e)}", exc_info=True)
        return 1

    failed = [outcome for outcome in outcomes if not outcome.ok]

    logger.info("=" * 50)
    logger.info("Extraction completed:")
    logger.info(f"- Documents processed: {len(outcomes) - len(failed)}/{len(outcomes)}")
    for outcome in failed:
        logger.info(f"- FAILED {outcome.source}: {outcome.error}")
    logger.info(f"- Results saved in: {sink.output_dir}")
    logger.info("=" * 50)

    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
