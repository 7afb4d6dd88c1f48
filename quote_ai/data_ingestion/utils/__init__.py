from .file_utils import get_file_metadata, ensure_directory, get_mime_type

__all__ = ['get_file_metadata', 'ensure_directory', 'get_mime_type']
