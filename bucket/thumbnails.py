import io
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
import logging

from PIL import Image, ImageOps

from .errors import ThumbnailFailure, UnsupportedClassification
from .models import ContentCategory

logger = logging.getLogger(__name__)

DEFAULT_SIZE = 256
SVG_MIME_TYPE = "image/svg+xml"
JPEG_QUALITY = 85


@dataclass
class Thumbnail:
	data: bytes
	content_type: str


def find_binary(name: str) -> Optional[str]:
	"""Full path of an executable on PATH, or None."""
	return shutil.which(name)


class ThumbnailGenerator:
	"""
	Makes small previews of images and videos.

	Callers must hand in paths that already went through path resolution;
	nothing here checks containment again.
	"""

	def __init__(self, size: int = DEFAULT_SIZE, ffmpeg_binary: str = "ffmpeg",
			video: bool = True, timeout: Optional[float] = 60):
		self.size = size
		self.ffmpeg_binary = ffmpeg_binary
		self.video = video
		self.timeout = timeout

	def generate(self, path: Path, mime_type: str) -> Thumbnail:
		"""
		Build a thumbnail for a resolved file.
		:raises UnsupportedClassification: for content that has no preview.
		:raises ThumbnailFailure: when the converter fails on a supported file.
		"""
		category = ContentCategory.from_mime_type(mime_type)

		if mime_type == SVG_MIME_TYPE:
			# vector images scale on their own
			try:
				return Thumbnail(Path(path).read_bytes(), SVG_MIME_TYPE)
			except OSError as e:
				raise ThumbnailFailure() from e

		if category is ContentCategory.IMAGE:
			return Thumbnail(self._image_thumbnail(path), "image/jpeg")

		if category is ContentCategory.VIDEO and self.video:
			return Thumbnail(self._video_thumbnail(path), "image/jpeg")

		raise UnsupportedClassification(mime_type)

	def _image_thumbnail(self, path: Path) -> bytes:
		"""Scale so the shorter side is `size`, keep the aspect ratio, drop profiles."""
		try:
			with Image.open(path) as img:
				thumb = ImageOps.exif_transpose(img)
				width, height = thumb.size
				scale = self.size / min(width, height)
				if scale < 1:
					new_size = (max(1, round(width * scale)), max(1, round(height * scale)))
					thumb = thumb.resize(new_size, Image.Resampling.LANCZOS)

				if thumb.mode in ("RGBA", "LA") or (thumb.mode == "P" and "transparency" in thumb.info):
					thumb = thumb.convert("RGBA")
					background = Image.new("RGB", thumb.size, (255, 255, 255))
					background.paste(thumb, mask=thumb.split()[3])
					thumb = background
				elif thumb.mode != "RGB":
					thumb = thumb.convert("RGB")

				output = io.BytesIO()
				thumb.save(output, format="JPEG", quality=JPEG_QUALITY)
		except (OSError, ValueError, ZeroDivisionError, Image.DecompressionBombError) as e:
			logger.warning(f"Image thumbnail failed for {path}: {e}")
			raise ThumbnailFailure() from e

		return output.getvalue()

	def _video_thumbnail(self, path: Path) -> bytes:
		"""Grab one representative frame with ffmpeg."""
		cmd = [
			self.ffmpeg_binary,
			"-v", "error",
			"-i", str(path),
			"-vf", f"thumbnail,scale=-1:{self.size}",
			"-frames:v", "1",
			"-f", "mjpeg",
			"-",
		]
		try:
			result = subprocess.run(cmd, capture_output=True, check=True, timeout=self.timeout)
		except (OSError, subprocess.SubprocessError) as e:
			logger.warning(f"Video thumbnail failed for {path}: {e}")
			raise ThumbnailFailure() from e

		if not result.stdout:
			logger.warning(f"ffmpeg produced no frame for {path}")
			raise ThumbnailFailure()
		return result.stdout
