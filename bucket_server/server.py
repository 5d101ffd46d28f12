import logging
from pathlib import Path
from typing import Optional
from flask import Flask, jsonify

from bucket import (
	ArchiveStreamer,
	BucketError,
	DirectoryLister,
	MimeClassifier,
	PathResolver,
	ThumbnailGenerator,
)
from .config import ServerConfig

logger = logging.getLogger(__name__)


def handle_bucket_error(error: BucketError):
	"""Render core errors as JSON; their messages are already safe to show."""
	return jsonify({"error": error.message}), error.status


def create_app(config: ServerConfig) -> Flask:
	"""Create and configure the Flask application."""
	static_dir = Path(__file__).parent / "static"
	
	app = Flask(
		__name__,
		static_folder=str(static_dir),
		static_url_path="/resources"
	)
	
	classifier = MimeClassifier()
	
	app.config["BUCKET_CONFIG"] = config
	app.config["BUCKET_RESOLVER"] = PathResolver(config.root)
	app.config["BUCKET_CLASSIFIER"] = classifier
	app.config["BUCKET_LISTER"] = DirectoryLister(classifier)
	app.config["BUCKET_STREAMER"] = ArchiveStreamer(
		chunk_size=config.archive_chunk_size,
		compression=config.archive_compression
	)
	app.config["BUCKET_THUMBNAILER"] = ThumbnailGenerator(
		size=config.thumbnail_size,
		ffmpeg_binary=config.ffmpeg_binary,
		video=config.video_thumbnails
	)
	
	# Register blueprints
	from .routes.files import files_bp
	from .routes.thumbnails import thumbnails_bp
	from .routes.views import views_bp
	
	app.register_blueprint(files_bp, url_prefix="/files")
	app.register_blueprint(thumbnails_bp, url_prefix="/thumbnails")
	app.register_blueprint(views_bp)
	
	app.register_error_handler(BucketError, handle_bucket_error)
	
	logger.info(f"Bucket server initialized (static: {static_dir})")
	
	return app


def run_server(config: ServerConfig):
	"""Run the bucket web server."""
	app = create_app(config)
	
	logger.info(f"Serving {config.root} on http://{config.host}:{config.port}")
	
	app.run(
		host=config.host,
		port=config.port,
		debug=config.debug,
		threaded=True
	)
