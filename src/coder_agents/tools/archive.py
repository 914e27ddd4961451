"""In-memory zip extraction used by the GitHub commit pusher.

Archives produced by the code-generation service are unpacked entirely in
memory. Nothing is written to disk: each file becomes an
:class:`ArchiveEntry` holding its bytes and whether it is executable.

Extraction fails fast on anything that could not be committed safely:

* corrupt, encrypted or unsupported containers,
* absolute paths, ``..`` segments, backslashes, ``.git`` segments and
  symbolic links,
* duplicate paths,
* archives over the configured size, entry count or depth ceilings.

Sizes are checked against the declared headers first and then again while
reading, so a header that under-reports its size cannot bypass the limit.
"""

from __future__ import annotations

import hashlib
import io
import re
import stat
import zipfile
import zlib
from typing import List

from pydantic import BaseModel, Field, field_validator

from coder_agents.config import ArchiveLimits
from coder_agents.errors import InvalidArchiveError, ResourceLimitExceededError

MODE_FILE = "100644"
MODE_EXECUTABLE = "100755"

_READ_CHUNK = 64 * 1024
_DRIVE_PATTERN = re.compile(r"^[A-Za-z]:")


class ArchiveEntry(BaseModel):
    """Single regular file extracted from an archive."""

    path: str = Field(..., description="Relative, forward-slash path inside the repository")
    content: bytes = b""
    is_executable: bool = False

    @field_validator("path")
    @classmethod
    def _check_path(cls, value: str) -> str:
        return normalize_entry_path(value)

    @property
    def mode(self) -> str:
        return MODE_EXECUTABLE if self.is_executable else MODE_FILE

    @property
    def blob_sha(self) -> str:
        return git_blob_sha(self.content)


def git_blob_sha(content: bytes) -> str:
    """Return the SHA-1 git assigns to a blob with ``content``."""

    header = f"blob {len(content)}\0".encode()
    return hashlib.sha1(header + content).hexdigest()


def normalize_entry_path(name: str) -> str:
    """Validate an archive member name and return its canonical form."""

    if not name or "\x00" in name:
        raise InvalidArchiveError("Archive entry has an empty or NUL-containing name", path=name)
    if "\\" in name:
        raise InvalidArchiveError(f"Archive entry '{name}' uses a backslash separator", path=name)
    if name.startswith("/") or _DRIVE_PATTERN.match(name):
        raise InvalidArchiveError(f"Archive entry '{name}' is an absolute path", path=name)

    segments = [segment for segment in name.split("/") if segment not in ("", ".")]
    if not segments:
        raise InvalidArchiveError(f"Archive entry '{name}' has no file name", path=name)
    if ".." in segments:
        raise InvalidArchiveError(f"Archive entry '{name}' escapes the extraction root", path=name)
    if any(segment.lower() == ".git" for segment in segments):
        raise InvalidArchiveError(f"Archive entry '{name}' targets git metadata", path=name)
    return "/".join(segments)


def _unix_mode(info: zipfile.ZipInfo) -> int:
    return (info.external_attr >> 16) & 0xFFFF


def _is_symlink(info: zipfile.ZipInfo) -> bool:
    return stat.S_ISLNK(_unix_mode(info))


def _is_executable(info: zipfile.ZipInfo) -> bool:
    return bool(_unix_mode(info) & 0o111)


def _read_member(
    archive: zipfile.ZipFile, info: zipfile.ZipInfo, *, consumed: int, limit: int
) -> bytes:
    buffer = bytearray()
    try:
        with archive.open(info) as handle:
            while True:
                chunk = handle.read(_READ_CHUNK)
                if not chunk:
                    break
                buffer.extend(chunk)
                if consumed + len(buffer) > limit:
                    raise ResourceLimitExceededError("bytes", consumed + len(buffer), limit)
    except ResourceLimitExceededError:
        raise
    except (zipfile.BadZipFile, zlib.error, EOFError, NotImplementedError, RuntimeError) as exc:
        raise InvalidArchiveError(
            f"Archive entry '{info.filename}' could not be read: {exc}", path=info.filename
        ) from exc
    return bytes(buffer)


def extract_archive(data: bytes, limits: ArchiveLimits | None = None) -> List[ArchiveEntry]:
    """Unpack ``data`` into ordered :class:`ArchiveEntry` records."""

    limits = limits or ArchiveLimits()
    try:
        archive = zipfile.ZipFile(io.BytesIO(data))
    except (zipfile.BadZipFile, zipfile.LargeZipFile, ValueError) as exc:
        raise InvalidArchiveError(f"Archive is not a readable zip container: {exc}") from exc

    with archive:
        members = archive.infolist()
        files: List[tuple[str, zipfile.ZipInfo]] = []
        for info in members:
            path = normalize_entry_path(info.filename)
            if info.is_dir():
                continue
            if _is_symlink(info):
                raise InvalidArchiveError(
                    f"Archive entry '{info.filename}' is a symbolic link", path=info.filename
                )
            depth = path.count("/") + 1
            if depth > limits.max_path_depth:
                raise ResourceLimitExceededError("depth", depth, limits.max_path_depth)
            files.append((path, info))

        if len(files) > limits.max_entries:
            raise ResourceLimitExceededError("entries", len(files), limits.max_entries)
        declared = sum(info.file_size for _, info in files)
        if declared > limits.max_total_bytes:
            raise ResourceLimitExceededError("bytes", declared, limits.max_total_bytes)

        entries: List[ArchiveEntry] = []
        seen: set[str] = set()
        consumed = 0
        for path, info in files:
            if path in seen:
                raise InvalidArchiveError(f"Archive contains duplicate entry '{path}'", path=path)
            seen.add(path)
            content = _read_member(
                archive, info, consumed=consumed, limit=limits.max_total_bytes
            )
            consumed += len(content)
            entries.append(
                ArchiveEntry(path=path, content=content, is_executable=_is_executable(info))
            )

    directories = {path.rsplit("/", 1)[0] for path in seen if "/" in path}
    directories |= {prefix for directory in directories for prefix in _parents(directory)}
    clashes = sorted(seen & directories)
    if clashes:
        raise InvalidArchiveError(
            f"Archive entry '{clashes[0]}' is both a file and a directory", path=clashes[0]
        )
    return entries


def _parents(directory: str) -> List[str]:
    parts = directory.split("/")
    return ["/".join(parts[:index]) for index in range(1, len(parts))]


__all__ = [
    "ArchiveEntry",
    "MODE_EXECUTABLE",
    "MODE_FILE",
    "extract_archive",
    "git_blob_sha",
    "normalize_entry_path",
]
