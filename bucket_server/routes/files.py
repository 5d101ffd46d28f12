import os
import stat
import logging
from pathlib import Path
from flask import Blueprint, Response, current_app, jsonify, request, send_file

from bucket import ArchiveEntryFailure, NotFound, archive_name

logger = logging.getLogger(__name__)

files_bp = Blueprint("files", __name__)

JSON_MIMETYPE = "application/json"
NO_CACHE = "no-cache"


def get_resolver():
	return current_app.config["BUCKET_RESOLVER"]


def wants_json() -> bool:
	"""
	True when the client asked for metadata rather than content.
	Older clients mark these requests with a JSON Content-Type, the bundled
	page and API clients with an explicit Accept header.
	A bare "*/*" does not count, nor does q=0.
	"""
	if request.mimetype == JSON_MIMETYPE:
		return True
	return any(mimetype == JSON_MIMETYPE and quality > 0 for mimetype, quality in request.accept_mimetypes)


# Anything with a trailing "/" addresses a directory; anything without one a file.
@files_bp.route("/", defaults={"path": ""}, methods=["GET"])
@files_bp.route("/<path:path>/", methods=["GET"], strict_slashes=False)
@files_bp.route("/<path:path>", methods=["GET"])
def get_files(path: str):
	"""List a directory, describe an entry, or download it."""
	directory_style = request.path.endswith("/")
	path = path.rstrip("/")
	resolved = get_resolver().resolve(path)
	
	if wants_json():
		if directory_style:
			return list_directory(resolved, path)
		return describe_entry(resolved, path)
	
	return download(resolved, path)


def list_directory(resolved: Path, path: str):
	entries = current_app.config["BUCKET_LISTER"].list(resolved, request_path=path)
	
	response = jsonify([entry.to_dict() for entry in entries])
	response.headers["Cache-Control"] = NO_CACHE
	return response


def describe_entry(resolved: Path, path: str):
	resolver = get_resolver()
	entry = current_app.config["BUCKET_LISTER"].describe(
		resolved,
		request_path=path,
		is_root=resolver.is_root(resolved)
	)
	
	response = jsonify(entry.to_dict())
	response.headers["Cache-Control"] = NO_CACHE
	return response


def download(resolved: Path, path: str):
	"""Send a file as-is, or a directory as a streamed ZIP archive."""
	try:
		st = os.stat(resolved)
	except OSError as e:
		# don't report the raw error, it names the absolute path
		logger.debug(f"Download target missing: {e}")
		raise NotFound(path) from e
	
	if stat.S_ISDIR(st.st_mode):
		return download_directory(resolved)
	return download_file(resolved)


def download_file(resolved: Path):
	mime_type = current_app.config["BUCKET_CLASSIFIER"].mime_type(resolved)
	
	response = send_file(
		resolved,
		mimetype=mime_type or "application/octet-stream",
		download_name=resolved.name,
		max_age=0
	)
	response.headers["Cache-Control"] = NO_CACHE
	return response


def download_directory(resolved: Path):
	"""
	Stream a directory as a ZIP.
	
	The first piece of the archive is produced before the response starts, so
	a directory that can't even be opened gets a normal error response. Later
	failures can only cut the stream short.
	"""
	resolver = get_resolver()
	streamer = current_app.config["BUCKET_STREAMER"]
	download_name = archive_name(resolved, resolver.root)
	
	chunks = streamer.iter_bytes(resolved)
	first = next(chunks, b"")
	
	def generate():
		try:
			yield first
			yield from chunks
		except ArchiveEntryFailure as e:
			logger.error(f"Archive {download_name} truncated: {e.message}")
			raise
		finally:
			chunks.close()
	
	logger.info(f"Streaming {download_name}")
	
	response = Response(generate(), mimetype="application/zip")
	response.headers.set("Content-Disposition", "attachment", filename=download_name)
	response.headers["Cache-Control"] = NO_CACHE
	return response
