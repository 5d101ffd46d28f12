import os
import stat
import logging
from flask import Blueprint, Response, current_app, request

from bucket import NotFound, UnsupportedClassification

logger = logging.getLogger(__name__)

thumbnails_bp = Blueprint("thumbnails", __name__)

DIRECTORY_MIME_TYPE = "inode/directory"


@thumbnails_bp.route("/<path:path>", methods=["GET"])
def get_thumbnail(path: str):
	"""Preview image for a single file; directories have none."""
	if request.path.endswith("/"):
		raise NotFound(path)
	
	resolved = current_app.config["BUCKET_RESOLVER"].resolve(path)
	
	try:
		st = os.stat(resolved)
	except OSError as e:
		logger.debug(f"Thumbnail target missing: {e}")
		raise NotFound(path) from e
	
	if stat.S_ISDIR(st.st_mode):
		raise UnsupportedClassification(DIRECTORY_MIME_TYPE)
	
	mime_type = current_app.config["BUCKET_CLASSIFIER"].mime_type(resolved)
	thumbnail = current_app.config["BUCKET_THUMBNAILER"].generate(resolved, mime_type)
	
	max_age = current_app.config["BUCKET_CONFIG"].thumbnail_max_age
	response = Response(thumbnail.data, mimetype=thumbnail.content_type)
	# thumbnails are cheap to keep and costly to make
	response.headers["Cache-Control"] = f"max-age={max_age}"
	return response
