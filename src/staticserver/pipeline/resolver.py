"""
=============================================================================
PATH RESOLUTION
=============================================================================

Maps a decoded URL path to something on disk under the served root.

    "/docs/"          → <root>/docs/index.html        (index fallback)
    "/docs/"          → listing of <root>/docs         (no index file)
    "/img/logo.png"   → <root>/img/logo.png
    "/../etc/passwd"  → <root>/etc/passwd              (".." cannot climb
                                                        above "/")
    "/link-to-etc"    → NotFound                       (symlink escaping
                                                        the root)

=============================================================================
TRAVERSAL HARDENING, TWO LAYERS
=============================================================================

1. Lexical: the path is normalized as an absolute POSIX path before being
   joined. posixpath.normpath("/../../x") is "/x", so no sequence of ".."
   segments reaches outside "/".

2. Physical: after joining, os.path.realpath() resolves symlinks and the
   result must still live inside the real root. A symlink inside the site
   pointing at /etc is refused.

Both failures are reported exactly like a missing file (404), and logged.

=============================================================================
"""

import logging
import os
import posixpath
import stat
from dataclasses import dataclass
from typing import Optional

from ..errors import NotFoundError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FileDescriptor:
    """
    What one os.stat() call told us about a path.

    Attributes:
        absolute_path:   Path on disk.
        is_directory:    True for directories.
        size:            Bytes.
        modified_time:   st_mtime (epoch seconds).
        change_time:     st_ctime (epoch seconds). Drives Last-Modified and
                         the ETag.
        permission_bits: st_mode (file type and permission bits).
    """

    absolute_path: str
    is_directory: bool
    size: int
    modified_time: float
    change_time: float
    permission_bits: int

    @classmethod
    def from_stat(cls, path: str, st: os.stat_result) -> "FileDescriptor":
        return cls(
            absolute_path=path,
            is_directory=stat.S_ISDIR(st.st_mode),
            size=st.st_size,
            modified_time=st.st_mtime,
            change_time=st.st_ctime,
            permission_bits=st.st_mode,
        )


@dataclass(frozen=True)
class Target:
    """
    A resolved request target.

    ``listing_required`` means a directory without an index file;
    ``file`` then describes the directory itself.
    """

    file: FileDescriptor
    listing_required: bool = False


class FileChunks:
    """
    Iterator over a file in fixed-size chunks.

    The file is opened on construction, so a vanished or unreadable file
    fails before any response header is written. close() is idempotent and
    also happens automatically at end of file.

    With ``limit`` set, at most that many bytes are yielded even if the
    file grows meanwhile; the announced Content-Length stays true.
    """

    def __init__(self, path: str, chunk_size: int = 64 * 1024, limit: Optional[int] = None):
        self._file = open(path, "rb")
        self._chunk_size = chunk_size
        self._remaining = limit

    def __iter__(self):
        return self

    def __next__(self) -> bytes:
        if self._file.closed:
            raise StopIteration
        size = self._chunk_size
        if self._remaining is not None:
            size = min(size, self._remaining)
        chunk = self._file.read(size) if size > 0 else b""
        if not chunk:
            self.close()
            raise StopIteration
        if self._remaining is not None:
            self._remaining -= len(chunk)
        return chunk

    def close(self) -> None:
        self._file.close()

    @property
    def closed(self) -> bool:
        return self._file.closed


class PathResolver:
    """Resolves URL paths under one root directory. Read-only; stateless."""

    def __init__(self, root_directory: str, index_file: str = "index.html"):
        self.root_directory = os.path.realpath(root_directory)
        self.index_file = index_file

    def resolve(self, url_path: str) -> Target:
        """
        Resolve a percent-decoded URL path.

        Raises:
            NotFoundError: Missing, unreadable, not a regular file or
                directory, or outside the root. The OS error, if any, is
                chained as ``__cause__``.
        """
        full_path = self._join(url_path)

        if not self._is_contained(full_path):
            logger.warning(f"Path traversal attempt: {url_path!r}")
            raise NotFoundError(f"Outside root: {url_path!r}")

        try:
            st = os.stat(full_path)
        except OSError as e:
            raise NotFoundError(f"{url_path!r}: {e.strerror}") from e

        if stat.S_ISDIR(st.st_mode):
            index = self._index_of(full_path)
            if index is not None:
                return Target(index)
            return Target(FileDescriptor.from_stat(full_path, st), listing_required=True)

        if stat.S_ISREG(st.st_mode):
            return Target(FileDescriptor.from_stat(full_path, st))

        raise NotFoundError(f"{url_path!r}: not a regular file")

    def _join(self, url_path: str) -> str:
        relative = posixpath.normpath("/" + url_path).lstrip("/")
        if relative in ("", "."):
            return self.root_directory
        return os.path.join(self.root_directory, *relative.split("/"))

    def _is_contained(self, path: str) -> bool:
        real = os.path.realpath(path)
        return os.path.commonpath([self.root_directory, real]) == self.root_directory

    def _index_of(self, directory: str) -> Optional[FileDescriptor]:
        index_path = os.path.join(directory, self.index_file)
        if not self._is_contained(index_path):
            return None
        try:
            st = os.stat(index_path)
        except OSError:
            return None
        if not stat.S_ISREG(st.st_mode):
            return None
        return FileDescriptor.from_stat(index_path, st)
