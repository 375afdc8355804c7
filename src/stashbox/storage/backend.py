"""Storage backend for handling file I/O operations.

This module provides the local filesystem primitives used by the cache:
whole-file byte reads and writes, line and JSON helpers, and directory
management.
"""

import logging
import mimetypes
import os
import shutil
import tempfile
import time
import uuid
from pathlib import Path
from typing import Any, List, Optional, Sequence, Union

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class StorageBackend:
    """Handles all file I/O operations for stashbox.

    Provides a unified interface for local storage operations including:
    - Byte operations (read, write, append, prepend, delete)
    - Line and JSON helpers
    - Directory operations (exists, writable, mkdir, list, recursive delete)
    - Path helpers

    Examples:
        >>> storage = StorageBackend()
        >>> storage.write_json('/path/to/data.json', {'key': 'value'})
        >>> data = storage.read_json('/path/to/data.json')
    """

    # =========================================================================
    # File system checks
    # =========================================================================

    def exists(self, path: PathLike) -> bool:
        """Check if a path exists.

        Args:
            path: Path to check

        Returns:
            True if path exists

        Examples:
            >>> storage = StorageBackend()
            >>> storage.exists('/path/to/file.json')
            True
        """
        return Path(path).exists()

    def is_file(self, path: PathLike) -> bool:
        """Check if a path is a regular file."""
        return Path(path).is_file()

    def is_dir(self, path: Optional[PathLike]) -> bool:
        """Check if a path is a directory."""
        if path is None:
            return False
        return Path(path).is_dir()

    def is_writable(self, path: Optional[PathLike]) -> bool:
        """Check if a path is a directory the current process can write to.

        Args:
            path: Directory path

        Returns:
            True if the directory exists and is writable
        """
        return self.is_dir(path) and os.access(path, os.W_OK)

    # =========================================================================
    # Byte I/O
    # =========================================================================

    def read_bytes(self, path: PathLike, default: Optional[bytes] = None) -> Optional[bytes]:
        """Read a whole file.

        Args:
            path: File path
            default: Returned when the file does not exist

        Returns:
            File content, or default if missing
        """
        if not self.is_file(path):
            return default
        with open(path, "rb") as f:
            return f.read()

    def write_bytes(self, path: PathLike, data: bytes) -> int:
        """Write data to a file, replacing any existing content.

        Args:
            path: File path
            data: Bytes to write

        Returns:
            Number of bytes written
        """
        with open(path, "wb") as f:
            return f.write(data)

    def append_bytes(self, path: PathLike, data: bytes) -> int:
        """Append data to a file, creating it if needed."""
        with open(path, "ab") as f:
            return f.write(data)

    def prepend_bytes(self, path: PathLike, data: bytes) -> int:
        """Prepend data to a file, creating it if needed.

        Returns:
            Total number of bytes in the rewritten file
        """
        existing = self.read_bytes(path, default=b"")
        return self.write_bytes(path, data + existing)

    def delete_file(self, path: PathLike) -> bool:
        """Delete a file.

        Errors are logged and reported through the return value.

        Args:
            path: File path to delete

        Returns:
            True if the file was removed

        Examples:
            >>> storage = StorageBackend()
            >>> storage.delete_file('/path/to/file.json')
            True
        """
        try:
            Path(path).unlink()
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.warning(f"Could not delete {path}: {e}")
            return False

    # =========================================================================
    # Text and line I/O
    # =========================================================================

    def read_text(self, path: PathLike, default: Optional[str] = None) -> Optional[str]:
        """Read a UTF-8 text file, or return default if missing."""
        content = self.read_bytes(path)
        if content is None:
            return default
        return content.decode("utf-8")

    def write_text(self, path: PathLike, text: str) -> int:
        """Write a UTF-8 text file."""
        return self.write_bytes(path, text.encode("utf-8"))

    def read_lines(
        self, path: PathLike, default: Optional[List[str]] = None
    ) -> List[str]:
        """Read a text file as a list of lines.

        Carriage returns are dropped and trailing whitespace is trimmed
        before splitting on newlines.

        Args:
            path: File path
            default: Returned when the file does not exist (empty list if None)

        Returns:
            List of lines
        """
        content = self.read_text(path)
        if content is None:
            return list(default) if default is not None else []
        return content.replace("\r", "").rstrip().split("\n")

    def write_lines(
        self, path: PathLike, lines: Sequence[str], separator: str = "\n"
    ) -> int:
        """Write lines, each followed by separator."""
        return self.write_text(path, separator.join(lines) + separator)

    def append_lines(
        self, path: PathLike, lines: Sequence[str], separator: str = "\n"
    ) -> int:
        """Append lines, each followed by separator."""
        return self.append_bytes(path, (separator.join(lines) + separator).encode("utf-8"))

    def prepend_lines(
        self, path: PathLike, lines: Sequence[str], separator: str = "\n"
    ) -> int:
        """Prepend lines, each followed by separator."""
        return self.prepend_bytes(
            path, (separator.join(lines) + separator).encode("utf-8")
        )

    # =========================================================================
    # JSON I/O
    # =========================================================================

    def write_json(self, path: PathLike, data: Any, pretty: bool = True) -> int:
        """Write JSON data to file.

        Args:
            path: File path
            data: Data to serialize
            pretty: Indent output with two spaces

        Returns:
            Number of bytes written

        Examples:
            >>> storage = StorageBackend()
            >>> storage.write_json('/path/to/data.json', {'key': 'value'})
        """
        import orjson

        option = orjson.OPT_SERIALIZE_NUMPY
        if pretty:
            option |= orjson.OPT_INDENT_2
        return self.write_bytes(path, orjson.dumps(data, option=option))

    def read_json(self, path: PathLike, default: Any = None) -> Any:
        """Read JSON data from file.

        Args:
            path: File path
            default: Returned when the file is missing or not valid JSON

        Returns:
            Deserialized data

        Examples:
            >>> storage = StorageBackend()
            >>> data = storage.read_json('/path/to/data.json')
        """
        import orjson

        content = self.read_bytes(path)
        if content is None:
            return default
        try:
            return orjson.loads(content)
        except orjson.JSONDecodeError as e:
            logger.warning(f"Invalid JSON in {path}: {e}")
            return default

    # =========================================================================
    # File metadata and movement
    # =========================================================================

    def touch(self, path: PathLike, mtime: Optional[float] = None) -> None:
        """Create a file if missing and set its modification time.

        Args:
            path: File path
            mtime: Unix timestamp (defaults to now)
        """
        if mtime is None:
            mtime = time.time()
        Path(path).touch()
        os.utime(path, (mtime, mtime))

    def file_size(self, path: PathLike) -> int:
        """Get file size in bytes."""
        return Path(path).stat().st_size

    def last_modified(self, path: PathLike) -> int:
        """Get modification time as whole unix seconds."""
        return int(Path(path).stat().st_mtime)

    def _resolve_destination(self, src: PathLike, dst: PathLike) -> Path:
        """Place src's basename under dst when dst is a directory."""
        dst = Path(dst)
        if self.is_dir(dst):
            return dst / Path(src).name
        return dst

    def copy_file(self, src: PathLike, dst: PathLike) -> bool:
        """Copy a file.

        Args:
            src: Source file path
            dst: Destination file path, or directory to copy into

        Returns:
            True on success
        """
        target = self._resolve_destination(src, dst)
        try:
            shutil.copy2(src, target)
            return True
        except OSError as e:
            logger.warning(f"Could not copy {src} to {target}: {e}")
            return False

    def move_file(self, src: PathLike, dst: PathLike) -> bool:
        """Move a file.

        Args:
            src: Source file path
            dst: Destination file path, or directory to move into

        Returns:
            True on success
        """
        target = self._resolve_destination(src, dst)
        try:
            shutil.move(str(src), str(target))
            return True
        except OSError as e:
            logger.warning(f"Could not move {src} to {target}: {e}")
            return False

    # =========================================================================
    # Directories
    # =========================================================================

    def mkdir(self, path: PathLike, parents: bool = True, exist_ok: bool = True) -> None:
        """Create a directory.

        Args:
            path: Directory path to create
            parents: Create parent directories if needed
            exist_ok: Don't error if directory exists

        Examples:
            >>> storage = StorageBackend()
            >>> storage.mkdir('/path/to/dir')
        """
        Path(path).mkdir(parents=parents, exist_ok=exist_ok)

    def list_dir(self, path: PathLike) -> List[str]:
        """List entry names directly inside a directory.

        Returns:
            Sorted names, or an empty list if the directory does not exist
        """
        if not self.is_dir(path):
            return []
        return sorted(os.listdir(path))

    def delete_dir(self, path: Optional[PathLike], preserve_root: bool = False) -> bool:
        """Recursively delete a directory.

        Symlinks to directories are removed as links, never followed.

        Args:
            path: Directory to delete
            preserve_root: Empty the directory but keep it

        Returns:
            False if path is not a directory, True otherwise
        """
        if not self.is_dir(path):
            return False

        for entry in os.scandir(path):
            if entry.is_dir(follow_symlinks=False):
                self.delete_dir(entry.path)
            else:
                self.delete_file(entry.path)

        if not preserve_root:
            try:
                os.rmdir(path)
            except OSError as e:
                logger.warning(f"Could not remove directory {path}: {e}")
        return True

    def clean_dir(self, path: PathLike) -> bool:
        """Delete everything inside a directory, keeping the directory."""
        return self.delete_dir(path, preserve_root=True)

    def temp_dir(self) -> str:
        """Get the system temporary directory."""
        return tempfile.gettempdir()

    def temp_filename(
        self, directory: Optional[PathLike] = None, prefix: str = "", suffix: str = ""
    ) -> str:
        """Generate a unique filename, creating an empty file when possible.

        Args:
            directory: Parent directory (defaults to the system temp dir)
            prefix: Filename prefix
            suffix: Filename suffix, e.g. '.json'

        Returns:
            Full path of the generated file
        """
        if directory is None:
            directory = self.temp_dir()
        path = self.join_paths(directory, f"{prefix}{uuid.uuid4().hex}{suffix}")
        if self.is_dir(directory):
            Path(path).touch()
        return path

    # =========================================================================
    # Paths
    # =========================================================================

    def join_paths(self, *parts: PathLike) -> str:
        """Join path components.

        Args:
            *parts: Path components to join

        Returns:
            Joined path string

        Examples:
            >>> storage = StorageBackend()
            >>> storage.join_paths('path', 'to', 'file.txt')
            'path/to/file.txt'
        """
        return str(Path(*parts))

    @staticmethod
    def filename(path: PathLike) -> str:
        """File name without extension ('a/b.txt' -> 'b')."""
        return Path(path).stem

    @staticmethod
    def basename(path: PathLike) -> str:
        """File name with extension ('a/b.txt' -> 'b.txt')."""
        return Path(path).name

    @staticmethod
    def dirname(path: PathLike) -> str:
        """Parent directory ('a/b.txt' -> 'a')."""
        return str(Path(path).parent)

    @staticmethod
    def extension(path: PathLike) -> str:
        """Extension without the dot ('a/b.txt' -> 'txt')."""
        return Path(path).suffix.lstrip(".")

    @staticmethod
    def mimetype(path: PathLike) -> str:
        """MIME type guessed from the file extension, '' if unknown.

        Examples:
            >>> StorageBackend.mimetype('data/report.json')
            'application/json'
        """
        guessed, _ = mimetypes.guess_type(str(path))
        return guessed or ""
