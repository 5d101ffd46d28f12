"""
Streams a directory tree out as a ZIP archive.

The archive is written front to back and never seeked, so it can go straight
into an HTTP response. Only one chunk of one file is in flight at a time, and
the sink is flushed after every entry so a client sees the download grow
instead of waiting for the whole tree.

Entry names are relative to the archived directory. Directories get their own
"name/" entries so empty ones survive, and symlinks are stored as links (the
raw target text is the entry's content) rather than followed.

Any failure aborts the whole stream with ArchiveEntryFailure. Nothing is
written after that, not even the central directory: a consumer should treat
the output as broken rather than as a shorter archive.
"""
import os
import stat
import time
import zipfile
from contextlib import closing
from pathlib import Path
from typing import BinaryIO, Iterator, List
import logging

from .errors import ArchiveEntryFailure, BucketError
from .models import ArchiveEntry, EntryKind

logger = logging.getLogger(__name__)

COPY_CHUNK_SIZE = 64 * 1024
ROOT_ENTRY_NAME = "./"
GENERIC_ARCHIVE_NAME = "files.zip"

# range of the DOS timestamps stored in ZIP headers
ZIP_EARLIEST = (1980, 1, 1, 0, 0, 0)
ZIP_LATEST = (2107, 12, 31, 23, 59, 58)

# a header could not be built, or the zip writer refused an entry
ZIP_ERRORS = (OSError, ValueError, OverflowError, RuntimeError, zipfile.LargeZipFile)


def archive_name(directory: Path, root: Path) -> str:
	"""Download name for an archive of `directory`; the root never shows its real name."""
	directory = Path(directory)
	if directory == Path(root) or not directory.name:
		return GENERIC_ARCHIVE_NAME
	return f"{directory.name}.zip"


def _sorted_children(path: str, prefix: str) -> Iterator[ArchiveEntry]:
	try:
		with os.scandir(path) as it:
			children = sorted((child.name, child.path) for child in it)
	except OSError as e:
		raise ArchiveEntryFailure(prefix or ROOT_ENTRY_NAME, "read") from e

	for name, child_path in children:
		relative = prefix + name
		try:
			st = os.lstat(child_path)
		except OSError as e:
			raise ArchiveEntryFailure(relative, "read") from e

		kind = EntryKind.from_stat(st)
		if kind is EntryKind.DIRECTORY:
			relative += "/"
		yield ArchiveEntry(relative, kind, child_path, st)


def walk_tree(directory: Path) -> Iterator[ArchiveEntry]:
	"""
	Yield every node under `directory`, depth first, children in name order.

	The directory itself comes first as "./". Symlinks below it are yielded
	as links and never descended into. Nothing is read ahead beyond the
	names of the directories currently open on the walk.
	"""
	top = os.fspath(directory)
	try:
		# the caller asked for this directory by name, so a link here is followed
		st = os.stat(top)
	except OSError as e:
		raise ArchiveEntryFailure(ROOT_ENTRY_NAME, "read") from e
	if not stat.S_ISDIR(st.st_mode):
		raise ArchiveEntryFailure(ROOT_ENTRY_NAME, "read")

	yield ArchiveEntry(ROOT_ENTRY_NAME, EntryKind.DIRECTORY, top, st)

	stack = [_sorted_children(top, "")]
	while stack:
		entry = next(stack[-1], None)
		if entry is None:
			stack.pop()
			continue

		yield entry
		if entry.is_directory:
			stack.append(_sorted_children(entry.path, entry.name))


class ForwardSink:
	"""
	Append-only view of an output stream.

	Hides seek() so zipfile writes data descriptors instead of going back to
	patch headers, counts bytes for tell(), and can be sealed so that nothing
	more reaches the real stream after a failure.
	"""

	def __init__(self, sink: BinaryIO):
		self._sink = sink
		self._position = 0
		self.sealed = False

	def write(self, data) -> int:
		size = len(data)
		if not self.sealed:
			self._sink.write(data)
			self._position += size
		return size

	def tell(self) -> int:
		return self._position

	def flush(self):
		if not self.sealed:
			self._sink.flush()

	def seal(self):
		self.sealed = True


class ChunkBuffer:
	"""In-memory sink that hands back whatever was written since the last drain."""

	def __init__(self):
		self._chunks: List[bytes] = []

	def write(self, data) -> int:
		self._chunks.append(bytes(data))
		return len(data)

	def flush(self):
		pass

	def drain(self) -> bytes:
		data = b"".join(self._chunks)
		self._chunks.clear()
		return data


class ArchiveStreamer:
	"""Writes one directory tree as a ZIP archive to a forward-only sink."""

	def __init__(self, chunk_size: int = COPY_CHUNK_SIZE, compression: int = zipfile.ZIP_STORED):
		if chunk_size <= 0:
			raise ValueError("chunk_size must be positive")
		self.chunk_size = chunk_size
		self.compression = compression

	def stream(self, directory: Path, sink: BinaryIO):
		"""
		Write the archive of `directory` to `sink`.
		:param sink: Anything with write() and flush(); it is never seeked or closed.
		:raises ArchiveEntryFailure: on the first entry that can't be written.
		"""
		for _ in self._steps(directory, sink):
			pass

	def iter_bytes(self, directory: Path) -> Iterator[bytes]:
		"""
		Produce the archive of `directory` as a sequence of byte strings.
		Suitable as a streaming response body; closing the generator stops the walk.
		"""
		buffer = ChunkBuffer()
		with closing(self._steps(directory, buffer)) as steps:
			for _ in steps:
				data = buffer.drain()
				if data:
					yield data

		data = buffer.drain()
		if data:
			yield data

	def _open_source(self, path: str) -> BinaryIO:
		return open(path, "rb")

	def _steps(self, directory: Path, sink: BinaryIO) -> Iterator[None]:
		"""Write the archive, pausing after every copied chunk and every finished entry."""
		out = ForwardSink(sink)
		archive = zipfile.ZipFile(out, mode="w", compression=self.compression, allowZip64=True)
		written = 0

		try:
			for entry in walk_tree(directory):
				yield from self._write_entry(archive, out, entry)

				try:
					out.flush()
				except OSError as e:
					raise ArchiveEntryFailure(entry.name, "flush data for") from e

				written += 1
				yield

			try:
				archive.close()
				out.flush()
			except ZIP_ERRORS as e:
				raise ArchiveEntryFailure("archive", "finish") from e

		except BaseException as e:
			out.seal()
			self._discard(archive)
			if isinstance(e, BucketError):
				logger.warning(f"Archive of {directory} aborted after {written} entries: {e.message}")
			raise

		logger.debug(f"Archived {written} entries from {directory}")

	def _discard(self, stream):
		"""Close a zip stream after a failure. The sink is sealed, so nothing reaches the client."""
		try:
			stream.close()
		except Exception as e:
			# the entry that broke the archive may break its bookkeeping too
			logger.debug(f"Ignoring error while discarding a failed archive: {e!r}")

	def _zip_info(self, entry: ArchiveEntry) -> zipfile.ZipInfo:
		date_time = time.localtime(entry.stat.st_mtime)[:6]
		date_time = min(max(date_time, ZIP_EARLIEST), ZIP_LATEST)

		# names that are not valid UTF-8 keep their readable parts
		stored_name = os.fsencode(entry.name).decode("utf-8", "replace")
		info = zipfile.ZipInfo(stored_name, date_time)
		info.create_system = 3  # unix, so the mode bits below are honoured
		info.external_attr = (entry.stat.st_mode & 0xFFFF) << 16

		if entry.is_directory:
			info.external_attr |= 0x10  # MS-DOS directory flag
			info.compress_type = zipfile.ZIP_STORED
			# mkdir() only fills these in when it builds the ZipInfo itself
			info.CRC = info.compress_size = info.file_size = 0
		elif entry.is_symlink:
			info.compress_type = zipfile.ZIP_STORED
		else:
			info.compress_type = self.compression
			info.file_size = entry.stat.st_size
		return info

	def _write_entry(self, archive: zipfile.ZipFile, out: ForwardSink, entry: ArchiveEntry) -> Iterator[None]:
		try:
			info = self._zip_info(entry)
		except ZIP_ERRORS as e:
			raise ArchiveEntryFailure(entry.name, "generate archive header for") from e

		if entry.is_directory:
			try:
				archive.mkdir(info)
			except ZIP_ERRORS as e:
				raise ArchiveEntryFailure(entry.name, "add") from e

		elif entry.is_symlink:
			# a zip symlink is an entry with the link mode whose body is the target path
			try:
				target = os.readlink(entry.path)
			except OSError as e:
				raise ArchiveEntryFailure(entry.name, "resolve") from e
			try:
				archive.writestr(info, os.fsencode(target))
			except ZIP_ERRORS as e:
				raise ArchiveEntryFailure(entry.name, "add") from e

		else:
			yield from self._write_file(archive, out, entry, info)

	def _write_file(self, archive: zipfile.ZipFile, out: ForwardSink, entry: ArchiveEntry,
			info: zipfile.ZipInfo) -> Iterator[None]:
		try:
			source = self._open_source(entry.path)
		except OSError as e:
			raise ArchiveEntryFailure(entry.name, "read") from e

		with source:
			try:
				dest = archive.open(info, mode="w")
			except ZIP_ERRORS as e:
				raise ArchiveEntryFailure(entry.name, "add") from e

			try:
				while True:
					try:
						chunk = source.read(self.chunk_size)
					except OSError as e:
						raise ArchiveEntryFailure(entry.name, "read") from e
					if not chunk:
						break

					try:
						dest.write(chunk)
					except ZIP_ERRORS as e:
						raise ArchiveEntryFailure(entry.name, "write") from e
					yield

				try:
					dest.close()
				except ZIP_ERRORS as e:
					raise ArchiveEntryFailure(entry.name, "write") from e
			except BaseException:
				# seal first: closing the entry would otherwise emit its trailer
				out.seal()
				self._discard(dest)
				raise
