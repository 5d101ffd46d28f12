import argparse
import logging
import sys
from bucket.logger import setup_logging
from bucket.thumbnails import find_binary
from bucket_server import ServerConfig, run_server

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 3000


def build_parser() -> argparse.ArgumentParser:
	parser = argparse.ArgumentParser(description="Serve a directory tree for browsing and download")
	parser.add_argument("root", help="Directory to serve")
	parser.add_argument("--host", default=DEFAULT_HOST, help="Server host")
	parser.add_argument("--port", type=int, default=DEFAULT_PORT, help="Server port")
	parser.add_argument("--thumbnail-size", type=int, default=256, help="Thumbnail edge length in pixels")
	parser.add_argument("--compress", action="store_true", help="Deflate archive entries instead of storing them")
	parser.add_argument("--ffmpeg", default="ffmpeg", help="ffmpeg executable used for video thumbnails")
	parser.add_argument("--no-video-thumbnails", action="store_true", help="Don't require ffmpeg; videos get no thumbnails")
	parser.add_argument("--quiet", action="store_true", help="Hide per-request log lines")
	parser.add_argument("--debug", action="store_true", help="Enable debug logging")
	return parser


def main(argv=None) -> int:
	args = build_parser().parse_args(argv)

	setup_logging(level=logging.DEBUG if args.debug else logging.INFO, request_log=not args.quiet)

	try:
		config = ServerConfig(
			root=args.root,
			host=args.host,
			port=args.port,
			debug=args.debug,
			thumbnail_size=args.thumbnail_size,
			compress_archives=args.compress,
			ffmpeg_binary=args.ffmpeg,
			video_thumbnails=not args.no_video_thumbnails
		)
	except ValueError as e:
		logging.critical(f"Invalid configuration: {e}")
		return 1

	# Ensure we have all the converters we need
	for binary in config.required_binaries:
		if find_binary(binary) is None:
			logging.critical(f"'{binary}' must be installed and in the PATH (or pass --no-video-thumbnails)")
			return 1

	try:
		run_server(config)
	except KeyboardInterrupt:
		logging.info("Shutting down...")
	except OSError as e:
		logging.critical(f"Fatal error: {e}", exc_info=True)
		return 1

	return 0


if __name__ == "__main__":
	sys.exit(main())
