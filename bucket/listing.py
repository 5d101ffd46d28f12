import os
from pathlib import Path
from typing import List, Optional
import logging

from .classify import MimeClassifier
from .errors import NotFound
from .models import EntryDescriptor
from .natsort import natural_sort

logger = logging.getLogger(__name__)

ROOT_DISPLAY_NAME = "files"


class DirectoryLister:
	"""Reads directory contents and single entries fresh from disk on every call."""

	def __init__(self, classifier: Optional[MimeClassifier] = None):
		self.classifier = classifier or MimeClassifier()

	def list(self, directory: Path, request_path: str = "") -> List[EntryDescriptor]:
		"""
		List the immediate children of a resolved directory in natural order.
		:param request_path: The client's own spelling of the path, used in NotFound.
		"""
		children = []
		try:
			with os.scandir(directory) as it:
				for child in it:
					children.append((child.name, child.path, child.stat(follow_symlinks=False)))
		except OSError as e:
			# the OS error would echo the absolute path back to the client
			logger.debug(f"Could not list {directory}: {e}")
			raise NotFound(request_path) from e

		mime_types = self.classifier.classify(path for _, path, _ in children)

		entries = [
			EntryDescriptor.from_stat(name, st, mime_types.get(path, ""))
			for name, path, st in children
		]
		return natural_sort(entries)

	def describe(self, path: Path, request_path: str = "", is_root: bool = False) -> EntryDescriptor:
		"""
		Describe one resolved file or directory.
		:param is_root: Report the served root under a generic name instead of its real one.
		"""
		try:
			st = os.lstat(path)
		except OSError as e:
			logger.debug(f"Could not stat {path}: {e}")
			raise NotFound(request_path) from e

		name = ROOT_DISPLAY_NAME if is_root else Path(path).name
		return EntryDescriptor.from_stat(name, st, self.classifier.mime_type(path))
