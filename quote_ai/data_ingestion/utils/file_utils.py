"""
File Utilities Module
Provides file metadata extraction for the persistence collaborator.
"""

import hashlib
from pathlib import Path
from typing import Union

from ...models import FileMetadata

MIME_TYPES = {
    '.pdf': 'application/pdf',
    '.doc': 'application/msword',
    '.docx': 'application/vnd.openxmlformats-officedocument.wordprocessingml.document',
    '.xls': 'application/vnd.ms-excel',
    '.xlsx': 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',
    '.xlsm': 'application/vnd.ms-excel.sheet.macroEnabled.12',
    '.csv': 'text/csv',
    '.txt': 'text/plain',
}


def get_mime_type(file_name: str) -> str:
    return MIME_TYPES.get(Path(file_name).suffix.lower(), 'application/octet-stream')


def get_file_metadata(file_path: Union[str, Path]) -> FileMetadata:
    """Extract metadata from file efficiently.

    Args:
        file_path: Path to the file

    Returns:
        FileMetadata: Name, SHA-256 hash, size and MIME type
    """
    file_path = Path(file_path) if isinstance(file_path, str) else file_path

    if not file_path.exists():
        raise FileNotFoundError(f"File not found: {file_path}")

    sha256 = hashlib.sha256()
    with open(file_path, "rb") as f:
        # Read in 64kb chunks for memory efficiency
        for chunk in iter(lambda: f.read(65536), b""):
            sha256.update(chunk)

    return FileMetadata(
        file_name=file_path.name,
        file_hash=sha256.hexdigest(),
        size_bytes=file_path.stat().st_size,
        mime_type=get_mime_type(file_path.name),
    )


def ensure_directory(directory_path: Union[str, Path]) -> Path:
    """Ensure directory exists, creating it if necessary."""
    directory_path = Path(directory_path) if isinstance(directory_path, str) else directory_path
    directory_path.mkdir(parents=True, exist_ok=True)
    return directory_path
