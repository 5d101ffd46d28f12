import posixpath
from pathlib import Path
from typing import Union
import logging

from .errors import InvalidPath

logger = logging.getLogger(__name__)

PARENT = ".."


def resolve(root: Union[str, Path], request_path: str) -> Path:
	"""
	Resolve a client supplied path against the served root.

	The join is cleaned lexically: ".", ".." and doubled slashes collapse
	without touching the disk or following symlinks. Anything that ends up
	outside of root raises InvalidPath.

	:param root: Absolute, canonical root directory.
	:param request_path: Untrusted path relative to root.
	:return: root itself or a descendant of it.
	"""
	root_str = posixpath.normpath(Path(root).as_posix())
	if "\x00" in request_path:
		raise InvalidPath()

	# a leading slash is still relative to root
	cleaned = posixpath.normpath(posixpath.join(root_str, request_path.lstrip("/")))
	relative = posixpath.relpath(cleaned, root_str)

	if relative == PARENT or relative.startswith(PARENT + "/"):
		logger.debug(f"Rejected request path outside root: {request_path!r}")
		raise InvalidPath()

	if relative == ".":
		return Path(root_str)
	return Path(root_str) / relative


class PathResolver:
	"""Binds resolve() to the single root a server instance exposes."""

	def __init__(self, root: Union[str, Path]):
		self._root = Path(posixpath.normpath(Path(root).as_posix()))

	@property
	def root(self) -> Path:
		return self._root

	def resolve(self, request_path: str) -> Path:
		return resolve(self._root, request_path)

	def is_root(self, path: Path) -> bool:
		return Path(path) == self._root
