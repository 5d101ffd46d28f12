import logging, sys

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s"


def setup_logging(level = logging.INFO, request_log: bool = True):
	"""
	Route every logger (ours and werkzeug's request log) to stdout.
	:param request_log: When False, per-request lines from werkzeug are only shown at DEBUG.
	"""
	root_logger = logging.getLogger()
	root_logger.setLevel(level)

	handler = logging.StreamHandler(sys.stdout)
	handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%H:%M:%S"))
	root_logger.addHandler(handler)

	if not request_log and level > logging.DEBUG:
		logging.getLogger("werkzeug").setLevel(logging.WARNING)
