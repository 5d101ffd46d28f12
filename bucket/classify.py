import mimetypes
import os
from typing import Dict, Iterable, Union
import logging

from .models import ContentCategory

logger = logging.getLogger(__name__)

PathLike = Union[str, os.PathLike]

# common types some platform tables lack
EXTRA_TYPES = {
	".webp": "image/webp",
	".heic": "image/heic",
	".mkv": "video/x-matroska",
	".webm": "video/webm",
	".m4v": "video/x-m4v",
	".md": "text/markdown",
}


class MimeClassifier:
	"""
	Guesses MIME types from file extensions.

	A path whose type can't be guessed maps to "" rather than raising, so
	callers can always list or archive it.
	"""

	def __init__(self, extra_types: Dict[str, str] = None):
		self._types = mimetypes.MimeTypes()
		for ext, mime_type in {**EXTRA_TYPES, **(extra_types or {})}.items():
			self._types.add_type(mime_type, ext)

	def mime_type(self, path: PathLike) -> str:
		mime_type, _ = self._types.guess_type(os.fspath(path), strict=False)
		return mime_type or ""

	def classify(self, paths: Iterable[PathLike]) -> Dict[PathLike, str]:
		"""Map each given path to its MIME type ("" when unknown)."""
		return {path: self.mime_type(path) for path in paths}

	def category(self, path: PathLike) -> ContentCategory:
		return ContentCategory.from_mime_type(self.mime_type(path))
