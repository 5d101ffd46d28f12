import os
import stat
from datetime import datetime, timezone
from dataclasses import dataclass, asdict
from enum import Enum

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"  # ISO 8601, UTC

# extensions shown as source code even when no text/* type is registered for them
SOURCE_EXTENSIONS = {
	".c", ".cc", ".cpp", ".cs", ".css", ".go", ".h", ".hpp", ".html", ".java",
	".js", ".json", ".jsx", ".kt", ".lua", ".m", ".php", ".pl", ".py", ".rb",
	".rs", ".scala", ".sh", ".sql", ".swift", ".toml", ".ts", ".tsx", ".xml",
	".yaml", ".yml",
}


class ContentCategory(str, Enum):
	"""Coarse content kinds that decide how a file gets previewed."""
	IMAGE = "image"
	VIDEO = "video"
	OTHER = "other"

	@classmethod
	def from_mime_type(cls, mime_type: str) -> "ContentCategory":
		major = (mime_type or "").split("/", 1)[0]
		if major == "image":
			return cls.IMAGE
		if major == "video":
			return cls.VIDEO
		return cls.OTHER


class EntryKind(str, Enum):
	FILE = "file"
	DIRECTORY = "directory"
	SYMLINK = "symlink"

	@classmethod
	def from_stat(cls, st: os.stat_result) -> "EntryKind":
		# expects an lstat result; links are never followed here
		if stat.S_ISLNK(st.st_mode):
			return cls.SYMLINK
		if stat.S_ISDIR(st.st_mode):
			return cls.DIRECTORY
		return cls.FILE


def format_timestamp(ts: float) -> str:
	return datetime.fromtimestamp(ts, tz=timezone.utc).strftime(TIMESTAMP_FORMAT)


def is_source_code(name: str, mime_type: str = "") -> bool:
	"""True for files that read as code or plain text."""
	if (mime_type or "").startswith("text/"):
		return True
	return os.path.splitext(name)[1].lower() in SOURCE_EXTENSIONS


@dataclass
class EntryDescriptor:
	"""What a client gets to see about one filesystem entry."""
	name: str
	size: int
	modified_at: str
	mime_type: str = ""
	is_code: bool = False
	is_directory: bool = False
	is_hidden: bool = False
	is_link: bool = False
	category: ContentCategory = ContentCategory.OTHER

	@classmethod
	def from_stat(cls, name: str, st: os.stat_result, mime_type: str = "") -> "EntryDescriptor":
		"""
		Build a descriptor from an lstat result.
		:param name: Base name only, never a full path.
		"""
		kind = EntryKind.from_stat(st)
		mime_type = mime_type or ""
		return cls(
			name=name,
			size=st.st_size,
			modified_at=format_timestamp(st.st_mtime),
			mime_type=mime_type,
			is_code=kind is not EntryKind.DIRECTORY and is_source_code(name, mime_type),
			is_directory=kind is EntryKind.DIRECTORY,
			is_hidden=name.startswith("."),
			is_link=kind is EntryKind.SYMLINK,
			category=ContentCategory.from_mime_type(mime_type),
		)

	def to_dict(self) -> dict:
		data = asdict(self)
		data["category"] = self.category.value
		return data


@dataclass
class ArchiveEntry:
	"""
	One node of a directory walk, as it will be written to an archive.

	`name` is relative to the archived directory and uses "/" separators;
	directory names end with "/". `path` is only used to read the source
	and never ends up in the archive.
	"""
	name: str
	kind: EntryKind
	path: str
	stat: os.stat_result

	@property
	def is_directory(self) -> bool:
		return self.kind is EntryKind.DIRECTORY

	@property
	def is_symlink(self) -> bool:
		return self.kind is EntryKind.SYMLINK
