"""Streaming ZIP export of directory trees."""

import io
import os
import stat
import tempfile
import unittest
import zipfile
from pathlib import Path

from bucket.archive import ArchiveStreamer, archive_name, walk_tree
from bucket.errors import ArchiveEntryFailure

from tests.helpers import RecordingSink, make_tree

END_OF_CENTRAL_DIRECTORY = b"PK\x05\x06"


class FailingStreamer(ArchiveStreamer):
	"""Refuses to open one file, as if it became unreadable mid-walk."""

	def __init__(self, fail_name: str, **kwargs):
		super().__init__(**kwargs)
		self.fail_name = fail_name

	def _open_source(self, path):
		if os.path.basename(path) == self.fail_name:
			raise PermissionError(13, "Permission denied", path)
		return super()._open_source(path)


class BrokenReader(io.BytesIO):
	"""Returns one chunk, then fails like a disk error."""

	def read(self, size=-1):
		if self.tell() > 0:
			raise OSError(5, "Input/output error")
		return super().read(size)


class ArchiveTestCase(unittest.TestCase):
	def setUp(self) -> None:
		self._tmp = tempfile.TemporaryDirectory()
		self.root = Path(self._tmp.name).resolve()

	def tearDown(self) -> None:
		self._tmp.cleanup()

	def archive_bytes(self, directory: Path, **kwargs) -> bytes:
		sink = RecordingSink()
		ArchiveStreamer(**kwargs).stream(directory, sink)
		return bytes(sink.data)


class WalkTreeTests(ArchiveTestCase):
	def test_depth_first_in_name_order(self) -> None:
		make_tree(self.root, {"b.txt": "b", "a": {"2.txt": "2", "1.txt": "1", "sub": {}}, "c": {}})
		names = [entry.name for entry in walk_tree(self.root)]
		self.assertEqual(names, ["./", "a/", "a/1.txt", "a/2.txt", "a/sub/", "b.txt", "c/"])

	def test_names_are_relative(self) -> None:
		make_tree(self.root, {"a": {"x": "x"}})
		for entry in walk_tree(self.root):
			self.assertFalse(entry.name.startswith("/"))
			self.assertNotIn(str(self.root), entry.name)

	@unittest.skipUnless(hasattr(os, "symlink"), "needs symlinks")
	def test_linked_directories_are_not_descended(self) -> None:
		make_tree(self.root, {"real": {"inside.txt": "x"}, "link": ("link", "real")})
		names = [entry.name for entry in walk_tree(self.root)]
		self.assertEqual(names, ["./", "link", "real/", "real/inside.txt"])

	def test_missing_directory_fails_on_the_root_entry(self) -> None:
		with self.assertRaises(ArchiveEntryFailure) as ctx:
			list(walk_tree(self.root / "missing"))
		self.assertEqual(ctx.exception.entry_name, "./")
		self.assertNotIn(str(self.root), ctx.exception.message)


class ArchiveStreamerTests(ArchiveTestCase):
	def test_end_to_end_layout(self) -> None:
		make_tree(self.root, {"b.txt": "bee", "a": {"1.txt": "one"}})
		with zipfile.ZipFile(io.BytesIO(self.archive_bytes(self.root))) as zf:
			self.assertEqual(zf.namelist(), ["./", "a/", "a/1.txt", "b.txt"])
			self.assertEqual(zf.read("a/1.txt"), b"one")
			self.assertEqual(zf.read("b.txt"), b"bee")
			self.assertIsNone(zf.testzip())

	def test_directory_entries_are_empty_and_stored(self) -> None:
		make_tree(self.root, {"a": {}})
		with zipfile.ZipFile(io.BytesIO(self.archive_bytes(self.root))) as zf:
			for name in ("./", "a/"):
				info = zf.getinfo(name)
				self.assertTrue(info.is_dir())
				self.assertEqual((info.CRC, info.file_size, info.compress_size), (0, 0, 0))
				self.assertEqual(info.compress_type, zipfile.ZIP_STORED)

	def test_undecodable_names_do_not_abort_the_archive(self) -> None:
		make_tree(self.root, {"ok.txt": "ok"})
		try:
			with open(os.path.join(os.fsencode(self.root), b"caf\xe9.txt"), "wb") as f:
				f.write(b"latte")
		except OSError:
			self.skipTest("filesystem rejects non-UTF-8 names")

		with zipfile.ZipFile(io.BytesIO(self.archive_bytes(self.root))) as zf:
			self.assertEqual(zf.namelist(), ["./", "caf\ufffd.txt", "ok.txt"])
			self.assertEqual(zf.read("caf\ufffd.txt"), b"latte")
			self.assertEqual(zf.read("ok.txt"), b"ok")

	def test_empty_directory_gives_a_single_directory_entry(self) -> None:
		with zipfile.ZipFile(io.BytesIO(self.archive_bytes(self.root))) as zf:
			infos = zf.infolist()
		self.assertEqual(len(infos), 1)
		self.assertTrue(infos[0].is_dir())

	def test_empty_subdirectories_are_kept(self) -> None:
		make_tree(self.root, {"empty": {}, "full": {"f": "x"}})
		with zipfile.ZipFile(io.BytesIO(self.archive_bytes(self.root))) as zf:
			info = zf.getinfo("empty/")
			self.assertTrue(info.is_dir())
			self.assertTrue(info.external_attr & 0x10)
			self.assertTrue(stat.S_ISDIR(info.external_attr >> 16))

	@unittest.skipUnless(hasattr(os, "symlink"), "needs symlinks")
	def test_symlink_is_stored_as_link_with_target_text(self) -> None:
		make_tree(self.root, {"target.txt": "real content", "link.txt": ("link", "target.txt")})
		with zipfile.ZipFile(io.BytesIO(self.archive_bytes(self.root))) as zf:
			info = zf.getinfo("link.txt")
			self.assertEqual(zf.read(info), b"target.txt")
			self.assertTrue(stat.S_ISLNK(info.external_attr >> 16))
			self.assertFalse(stat.S_ISREG(info.external_attr >> 16))
			self.assertEqual(zf.read("target.txt"), b"real content")

	@unittest.skipUnless(hasattr(os, "symlink"), "needs symlinks")
	def test_dangling_and_outward_links_keep_their_raw_target(self) -> None:
		make_tree(self.root, {"up": ("link", "../../etc/passwd"), "gone": ("link", "nowhere")})
		with zipfile.ZipFile(io.BytesIO(self.archive_bytes(self.root))) as zf:
			self.assertEqual(zf.read("up"), b"../../etc/passwd")
			self.assertEqual(zf.read("gone"), b"nowhere")

	def test_large_file_is_copied_in_chunks(self) -> None:
		payload = os.urandom(10_000)
		make_tree(self.root, {"big.bin": payload})
		sink = RecordingSink()
		ArchiveStreamer(chunk_size=1024).stream(self.root, sink)
		with zipfile.ZipFile(io.BytesIO(bytes(sink.data))) as zf:
			self.assertEqual(zf.read("big.bin"), payload)

	def test_deflate_compression(self) -> None:
		payload = b"abc" * 5000
		make_tree(self.root, {"text.txt": payload})
		data = self.archive_bytes(self.root, compression=zipfile.ZIP_DEFLATED)
		self.assertLess(len(data), len(payload))
		with zipfile.ZipFile(io.BytesIO(data)) as zf:
			self.assertEqual(zf.getinfo("text.txt").compress_type, zipfile.ZIP_DEFLATED)
			self.assertEqual(zf.read("text.txt"), payload)

	def test_sink_is_flushed_after_every_entry(self) -> None:
		make_tree(self.root, {"a": {"1.txt": "1"}, "b.txt": "b"})
		sink = RecordingSink()
		ArchiveStreamer().stream(self.root, sink)
		# four entries, then the central directory
		self.assertGreaterEqual(len(sink.flushes), 5)
		self.assertEqual(sink.flushes, sorted(sink.flushes))

	def test_old_timestamps_are_clamped(self) -> None:
		make_tree(self.root, {"old.txt": "x"})
		os.utime(self.root / "old.txt", (0, 0))
		with zipfile.ZipFile(io.BytesIO(self.archive_bytes(self.root))) as zf:
			self.assertEqual(zf.getinfo("old.txt").date_time[0], 1980)

	def test_stream_never_seeks_the_sink(self) -> None:
		make_tree(self.root, {"a.txt": "a" * 50})

		class NoSeekBuffer(io.BytesIO):
			def seek(self, *args):
				raise AssertionError("archive output must be forward-only")

		sink = NoSeekBuffer()
		ArchiveStreamer().stream(self.root, sink)
		with zipfile.ZipFile(io.BytesIO(sink.getvalue())) as zf:
			self.assertEqual(zf.read("a.txt"), b"a" * 50)

	def test_invalid_chunk_size(self) -> None:
		with self.assertRaises(ValueError):
			ArchiveStreamer(chunk_size=0)


class ArchiveFailureTests(ArchiveTestCase):
	def setUp(self) -> None:
		super().setUp()
		make_tree(self.root, {"a": {"1.txt": "one"}, "b.txt": "bee", "c.txt": "sea"})

	def test_unreadable_file_aborts_the_stream(self) -> None:
		sink = RecordingSink()
		with self.assertRaises(ArchiveEntryFailure) as ctx:
			FailingStreamer("b.txt").stream(self.root, sink)

		self.assertEqual(ctx.exception.entry_name, "b.txt")
		self.assertEqual(ctx.exception.message, "Failed to read b.txt")
		self.assertNotIn(str(self.root), ctx.exception.message)

		data = bytes(sink.data)
		self.assertIn(b"a/1.txt", data)
		self.assertNotIn(b"c.txt", data)
		self.assertNotIn(END_OF_CENTRAL_DIRECTORY, data)

	def test_directory_header_failure_surfaces_as_entry_failure(self) -> None:
		class BadHeaderStreamer(ArchiveStreamer):
			def _zip_info(self, entry):
				info = super()._zip_info(entry)
				if entry.name == "a/":
					# a name zipfile cannot encode, so writing its header fails
					info.filename = "bad\udce9/"
				return info

		sink = RecordingSink()
		with self.assertRaises(ArchiveEntryFailure) as ctx:
			BadHeaderStreamer().stream(self.root, sink)
		self.assertEqual(ctx.exception.message, "Failed to add a/")
		self.assertNotIn(END_OF_CENTRAL_DIRECTORY, bytes(sink.data))

	def test_already_flushed_entries_stay_in_the_output(self) -> None:
		sink = RecordingSink()
		with self.assertRaises(ArchiveEntryFailure):
			FailingStreamer("b.txt").stream(self.root, sink)
		self.assertTrue(sink.flushes)
		self.assertEqual(len(sink.data), sink.flushes[-1])

	def test_read_error_mid_file_aborts_without_the_entry_trailer(self) -> None:
		streamer = ArchiveStreamer(chunk_size=1)
		streamer._open_source = lambda path: BrokenReader(b"xyz") if path.endswith("b.txt") else open(path, "rb")
		sink = RecordingSink()
		with self.assertRaises(ArchiveEntryFailure) as ctx:
			streamer.stream(self.root, sink)
		self.assertEqual(ctx.exception.message, "Failed to read b.txt")
		self.assertNotIn(b"c.txt", bytes(sink.data))
		self.assertNotIn(END_OF_CENTRAL_DIRECTORY, bytes(sink.data))

	def test_closed_sink_stops_the_walk(self) -> None:
		sink = RecordingSink(fail_after=40)
		with self.assertRaises(ArchiveEntryFailure):
			ArchiveStreamer().stream(self.root, sink)
		self.assertEqual(sink.writes_after_failure, 0)

	def test_iter_bytes_yields_what_was_produced_before_failing(self) -> None:
		chunks = []
		with self.assertRaises(ArchiveEntryFailure):
			for chunk in FailingStreamer("b.txt").iter_bytes(self.root):
				chunks.append(chunk)
		data = b"".join(chunks)
		self.assertIn(b"a/1.txt", data)
		self.assertNotIn(b"b.txt", data)


class IterBytesTests(ArchiveTestCase):
	def test_yields_incrementally(self) -> None:
		make_tree(self.root, {"a.txt": "a" * 100, "b.txt": "b" * 100})
		chunks = list(ArchiveStreamer(chunk_size=10).iter_bytes(self.root))
		self.assertGreater(len(chunks), 10)
		with zipfile.ZipFile(io.BytesIO(b"".join(chunks))) as zf:
			self.assertEqual(zf.namelist(), ["./", "a.txt", "b.txt"])

	def test_closing_early_releases_the_open_file(self) -> None:
		make_tree(self.root, {"a.txt": "a" * 100})
		opened = []

		class TrackingStreamer(ArchiveStreamer):
			def _open_source(self, path):
				source = super()._open_source(path)
				opened.append(source)
				return source

		chunks = TrackingStreamer(chunk_size=1).iter_bytes(self.root)
		next(chunks)
		while not opened:
			next(chunks)
		chunks.close()
		self.assertTrue(opened[0].closed)


class ArchiveNameTests(unittest.TestCase):
	def test_root_gets_a_generic_name(self) -> None:
		self.assertEqual(archive_name(Path("/srv/secret-share"), Path("/srv/secret-share")), "files.zip")

	def test_subdirectory_uses_its_last_segment(self) -> None:
		self.assertEqual(archive_name(Path("/srv/share/photos/2020"), Path("/srv/share")), "2020.zip")


if __name__ == "__main__":
	unittest.main()
