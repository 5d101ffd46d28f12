from dataclasses import dataclass
from pathlib import Path
import zipfile
import logging

from bucket.archive import COPY_CHUNK_SIZE
from bucket.thumbnails import DEFAULT_SIZE

logger = logging.getLogger(__name__)


@dataclass
class ServerConfig:
	"""Configuration for the bucket web server."""
	root: Path = None
	host: str = "127.0.0.1"
	port: int = 3000
	debug: bool = False
	thumbnail_size: int = DEFAULT_SIZE
	thumbnail_max_age: int = 3600  # seconds
	archive_chunk_size: int = COPY_CHUNK_SIZE
	compress_archives: bool = False
	ffmpeg_binary: str = "ffmpeg"
	video_thumbnails: bool = True

	def __post_init__(self):
		if self.root is None:
			raise ValueError("A root directory is required")
		
		# The root is fixed for the life of the process
		self.root = Path(self.root).expanduser().resolve()
		if not self.root.is_dir():
			raise ValueError(f"Root is not a directory: {self.root}")
		
		if self.thumbnail_size <= 0:
			raise ValueError("Thumbnail size must be positive")
		if self.archive_chunk_size <= 0:
			raise ValueError("Archive chunk size must be positive")
		if self.thumbnail_max_age < 0:
			raise ValueError("Thumbnail max age cannot be negative")
	
	@property
	def archive_compression(self) -> int:
		return zipfile.ZIP_DEFLATED if self.compress_archives else zipfile.ZIP_STORED
	
	@property
	def required_binaries(self) -> list:
		"""External converters that must be on PATH before serving."""
		return [self.ffmpeg_binary] if self.video_thumbnails else []
