"""Password-protected ZIP builder with per-entry AES encryption."""

import os
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Sequence, Tuple, Union

import pyzipper

from common.constants import STREAM_PIECE_SIZE_BYTES
from common.logging_config import get_logger
from bundler.exceptions import ArchiveIOError

logger = get_logger(__name__)

PathLike = Union[str, Path]

# outcomes of _add_entry
_ADDED = "added"
_UNREADABLE = "unreadable"
_INTERRUPTED = "interrupted"


@dataclass
class EncodeResult:
    path: Path
    included: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)


def encode_archive(
    entries: Sequence[Tuple[PathLike, str]],
    passcode: str,
    dest_path: PathLike,
) -> EncodeResult:
    """
    Stream source files into a WinZip-AES-256 encrypted ZIP.

    Every entry is encrypted on its own under a key derived from ``passcode``.
    A source is deleted right after its entry has been closed in the
    container. Sources that cannot be opened are skipped and left in place.
    A source that fails part way through is also kept, and the container is
    rewritten without the unfinished entry, so every name in ``skipped`` is
    absent from the archive.

    The archive is assembled under a ``.part`` name and only moved to
    ``dest_path`` once closed. An existing ``dest_path`` is never replaced.

    Args:
        entries: Ordered (source path, name inside the archive) pairs
        passcode: Archive password
        dest_path: Where the ZIP is written

    Returns:
        EncodeResult with the archive path and the names that were included/skipped

    Raises:
        ArchiveIOError: If the destination already exists, the container
            cannot be created, or it cannot be rewritten after a failed entry
    """
    dest_path = Path(dest_path)
    result = EncodeResult(path=dest_path)
    password = passcode.encode('utf-8')

    if dest_path.exists():
        raise ArchiveIOError(f"Refusing to overwrite existing archive at {dest_path}")

    work_path = dest_path.with_name(dest_path.name + ".part")
    try:
        dest_path.parent.mkdir(parents=True, exist_ok=True)
        archive = _create(work_path, password)
    except OSError as e:
        raise ArchiveIOError(f"Unable to create archive at {dest_path}: {e}") from e

    try:
        for source_path, archive_name in entries:
            outcome = _add_entry(archive, Path(source_path), archive_name)
            if outcome == _ADDED:
                result.included.append(archive_name)
                continue

            result.skipped.append(archive_name)
            if outcome == _INTERRUPTED:
                archive = _rewrite(archive, work_path, password, len(result.included))
    finally:
        archive.close()

    try:
        os.replace(work_path, dest_path)
    except OSError as e:
        raise ArchiveIOError(f"Unable to move archive into place at {dest_path}: {e}") from e

    logger.info(
        f"Archive written to {dest_path}: {len(result.included)} entries, "
        f"{len(result.skipped)} skipped"
    )
    return result


def _create(path: Path, password: bytes) -> pyzipper.AESZipFile:
    archive = pyzipper.AESZipFile(
        path,
        'x',
        compression=pyzipper.ZIP_DEFLATED,
        encryption=pyzipper.WZ_AES,
    )
    archive.setpassword(password)
    archive.setencryption(pyzipper.WZ_AES, nbits=256)
    return archive


def _rewrite(
    archive: pyzipper.AESZipFile,
    work_path: Path,
    password: bytes,
    keep: int,
) -> pyzipper.AESZipFile:
    """
    Close ``archive`` and copy its first ``keep`` entries into a fresh one.

    The sources of those entries are already deleted, so the old container is
    only removed after the copy is complete. On failure it stays on disk.
    """
    fresh_path = work_path.with_name(work_path.name + ".rewrite")
    fresh = None
    try:
        archive.close()
        fresh_path.unlink(missing_ok=True)
        fresh = _create(fresh_path, password)
        with pyzipper.AESZipFile(work_path) as old:
            old.setpassword(password)
            for info in old.infolist()[:keep]:
                with old.open(info) as src, fresh.open(info.filename, 'w') as dst:
                    shutil.copyfileobj(src, dst, STREAM_PIECE_SIZE_BYTES)
        fresh.close()
        os.replace(fresh_path, work_path)
    except (OSError, RuntimeError, pyzipper.BadZipFile) as e:
        if fresh is not None:
            fresh.close()
        fresh_path.unlink(missing_ok=True)
        raise ArchiveIOError(
            f"Unable to drop an unfinished entry from {work_path}; archived data kept there: {e}"
        ) from e

    logger.info(f"Rewrote {work_path} with {keep} finished entries")
    archive = pyzipper.AESZipFile(
        work_path,
        'a',
        compression=pyzipper.ZIP_DEFLATED,
        encryption=pyzipper.WZ_AES,
    )
    archive.setpassword(password)
    archive.setencryption(pyzipper.WZ_AES, nbits=256)
    return archive


def _add_entry(archive: pyzipper.AESZipFile, source_path: Path, archive_name: str) -> str:
    try:
        source = open(source_path, 'rb')
    except OSError as e:
        logger.warning(f"Error opening file at {source_path}, skipping: {e}")
        return _UNREADABLE

    try:
        with source, archive.open(archive_name, 'w') as dest:
            shutil.copyfileobj(source, dest, STREAM_PIECE_SIZE_BYTES)
    except OSError as e:
        logger.warning(f"Error zipping file at {source_path}, keeping source: {e}")
        return _INTERRUPTED

    try:
        os.remove(source_path)
    except OSError as e:
        logger.warning(f"Archived {source_path} but could not remove it: {e}")

    return _ADDED
