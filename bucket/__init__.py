from .errors import (
	BucketError,
	InvalidPath,
	NotFound,
	ArchiveEntryFailure,
	UnsupportedClassification,
	ThumbnailFailure,
)
from .paths import PathResolver, resolve
from .models import ArchiveEntry, ContentCategory, EntryDescriptor, EntryKind, is_source_code
from .classify import MimeClassifier
from .natsort import compare_names, natural_compare, natural_sort
from .listing import DirectoryLister
from .archive import ArchiveStreamer, archive_name, walk_tree
from .thumbnails import Thumbnail, ThumbnailGenerator

__version__ = "0.1.0"
