"""
Credential store: the token file and the nonce file.

Both files hold raw text with no trailing newline and are created with mode
0600. ``persist`` stages both values next to their targets before renaming
either of them, so a failed write leaves the previous pair in place and a
reader never sees a half-written token.

Two ec2auth processes pointed at the same files are not supported.
"""

from __future__ import annotations

import logging
import os
import stat
import tempfile
from dataclasses import dataclass
from pathlib import Path

from ec2auth.core.config import AgentConfig
from ec2auth.core.constants import CREDENTIAL_DIR_MODE, CREDENTIAL_FILE_MODE
from ec2auth.core.exceptions import PersistenceError

logger = logging.getLogger(__name__)


def stage_file(
    target: Path,
    value: str,
    file_mode: int = CREDENTIAL_FILE_MODE,
    dir_mode: int = CREDENTIAL_DIR_MODE,
) -> Path:
    """
    Write *value* to a temp file beside *target* and return the temp path.

    The temp file gets *file_mode* before any data is written and is synced
    to disk. Missing parent directories are created with *dir_mode*.
    """
    target.parent.mkdir(mode=dir_mode, parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=f".{target.name}.", suffix=".tmp")
    tmp = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
            os.fchmod(f.fileno(), file_mode)
            f.write(value)
            f.flush()
            os.fsync(f.fileno())
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise
    return tmp


def replace_file(target: Path, value: str, file_mode: int, dir_mode: int) -> None:
    """Atomically replace *target* with *value* via :func:`stage_file`."""
    tmp = stage_file(target, value, file_mode, dir_mode)
    try:
        os.replace(tmp, target)
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise


@dataclass(frozen=True)
class FileStatus:
    path: Path
    exists: bool
    size: int = 0
    mode: int | None = None

    @property
    def private(self) -> bool:
        """True when neither group nor others have any access."""
        return self.mode is not None and not self.mode & 0o077


class CredentialStore:
    """Reads the nonce and writes the token/nonce pair."""

    def __init__(self, token_path: Path, nonce_path: Path) -> None:
        self.token_path = token_path
        self.nonce_path = nonce_path

    @classmethod
    def from_config(cls, config: AgentConfig) -> CredentialStore:
        return cls(token_path=config.token_path, nonce_path=config.nonce_path)

    # ------------------------------------------------------------------
    # Nonce
    # ------------------------------------------------------------------

    def has_nonce(self) -> tuple[bool, str]:
        """
        Return ``(True, nonce)`` if a non-empty nonce file exists.

        A missing file and a zero-length file both mean "no nonce" and
        return ``(False, "")``. The contents are returned verbatim.

        Raises:
            PersistenceError: The file exists but cannot be read.
        """
        try:
            size = self.nonce_path.stat().st_size
        except FileNotFoundError:
            return False, ""
        except OSError as exc:
            raise PersistenceError(f"Cannot stat nonce file {self.nonce_path}: {exc}") from exc

        if size == 0:
            return False, ""

        try:
            with open(self.nonce_path, encoding="utf-8", newline="") as f:
                nonce = f.read()
        except (OSError, UnicodeDecodeError) as exc:
            raise PersistenceError(f"Cannot read nonce file {self.nonce_path}: {exc}") from exc
        return True, nonce

    # ------------------------------------------------------------------
    # Persist
    # ------------------------------------------------------------------

    def persist(self, token: str, nonce: str) -> None:
        """
        Replace the token file and the nonce file with *token* and *nonce*.

        Both values are staged into temp files first; if staging either one
        fails, neither target is touched. The targets are then swapped in
        with ``os.replace``, token first.

        Raises:
            PersistenceError: Any write, permission or rename failure. The
                message names every path that failed.
        """
        staged: list[tuple[Path, Path]] = []
        errors: list[str] = []

        for target, value in ((self.token_path, token), (self.nonce_path, nonce)):
            try:
                staged.append((target, stage_file(target, value)))
            except (OSError, UnicodeError) as exc:
                errors.append(f"{target}: {exc}")

        if errors:
            self._discard(staged)
            raise PersistenceError("Cannot write credentials: " + "; ".join(errors))

        for i, (target, tmp) in enumerate(staged):
            try:
                os.replace(tmp, target)
            except OSError as exc:
                self._discard(staged[i:])
                raise PersistenceError(f"Cannot replace {target}: {exc}") from exc

        logger.debug("Wrote token to %s and nonce to %s", self.token_path, self.nonce_path)

    @staticmethod
    def _discard(staged: list[tuple[Path, Path]]) -> None:
        for _, tmp in staged:
            tmp.unlink(missing_ok=True)

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    def describe(self) -> list[FileStatus]:
        """Return metadata for both files. Never reads their contents."""
        return [_file_status(self.token_path), _file_status(self.nonce_path)]


def _file_status(path: Path) -> FileStatus:
    try:
        st = path.stat()
    except FileNotFoundError:
        return FileStatus(path=path, exists=False)
    return FileStatus(path=path, exists=True, size=st.st_size, mode=stat.S_IMODE(st.st_mode))
