"""
Errors raised by the file bucket core.

Every message here is safe to hand to a client: none of them carry an
absolute filesystem path or the text of an underlying OS error.
"""


class BucketError(Exception):
	"""Base class for errors that map onto an HTTP response."""
	status = 500

	def __init__(self, message: str):
		self.message = message
		super().__init__(message)


class InvalidPath(BucketError):
	"""Raised when a request path would leave the served root."""
	status = 400

	def __init__(self):
		# keep it vague; the caller is probably probing
		super().__init__("Invalid path")


class NotFound(BucketError):
	"""Raised when a resolved path does not exist or cannot be read."""
	status = 404

	def __init__(self, request_path: str = ""):
		self.request_path = request_path
		super().__init__(f"Could not find {request_path}" if request_path else "Not found")


class ArchiveEntryFailure(BucketError):
	"""
	Raised when one entry of an archive stream cannot be produced.
	:param entry_name: Name of the entry relative to the archived directory.
	:param action: What failed, e.g. "read", "add", "resolve", "flush".
	"""
	status = 500

	def __init__(self, entry_name: str, action: str):
		self.entry_name = entry_name
		self.action = action
		super().__init__(f"Failed to {action} {entry_name}")


class UnsupportedClassification(BucketError):
	"""Raised when no thumbnail can be made for a content type."""
	status = 415

	def __init__(self, mime_type: str):
		self.mime_type = mime_type
		super().__init__(f"Unsupported file type: {mime_type}")


class ThumbnailFailure(BucketError):
	"""Raised when a converter fails on a supported file."""
	status = 500

	def __init__(self):
		super().__init__("Failed to generate thumbnail")
