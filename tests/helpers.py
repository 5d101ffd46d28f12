import os
from pathlib import Path


def make_tree(root: Path, layout: dict):
	"""
	Create files and directories under root.
	Values: bytes/str -> file content, dict -> subdirectory, ("link", target) -> symlink.
	"""
	for name, value in layout.items():
		path = root / name
		if isinstance(value, dict):
			path.mkdir()
			make_tree(path, value)
		elif isinstance(value, tuple) and value[0] == "link":
			os.symlink(value[1], path)
		elif isinstance(value, str):
			path.write_text(value, encoding="utf-8")
		else:
			path.write_bytes(value)


class RecordingSink:
	"""Forward-only sink that remembers what was written and when it was flushed."""

	def __init__(self, fail_after: int = None):
		self.data = bytearray()
		self.flushes = []
		self.writes_after_failure = 0
		self.failed = False
		self._fail_after = fail_after

	def write(self, data):
		if self.failed:
			self.writes_after_failure += 1
			raise BrokenPipeError("sink closed")
		if self._fail_after is not None and len(self.data) + len(data) > self._fail_after:
			self.failed = True
			raise BrokenPipeError("sink closed")
		self.data.extend(data)
		return len(data)

	def flush(self):
		if self.failed:
			raise BrokenPipeError("sink closed")
		self.flushes.append(len(self.data))
