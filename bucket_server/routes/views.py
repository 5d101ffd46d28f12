import logging
from flask import Blueprint, current_app, redirect, url_for

logger = logging.getLogger(__name__)

views_bp = Blueprint("views", __name__)

INDEX_PAGE = "index.html"


@views_bp.route("/")
def index():
	return redirect(url_for("views.home"))


@views_bp.route("/home", defaults={"path": ""})
@views_bp.route("/home/<path:path>")
def home(path: str):
	"""Single page browser UI; it reads the path from the URL itself."""
	response = current_app.send_static_file(INDEX_PAGE)
	response.headers["Cache-Control"] = "no-cache"
	return response
