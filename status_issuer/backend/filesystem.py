# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Credential status artifacts kept in a local directory and served by this service.

Files are replaced atomically, but there is no version token and no locking
between processes. Only suitable for a single service instance.
"""

import logging
import os
import tempfile
from pathlib import Path

from status_issuer.backend.base import CREDENTIAL_STATUS_CONFIG_FILE, BackendKind, CredentialStatusBackend, RawFile
from status_issuer.exception import BackendUnavailable, NotFound, OptimisticConcurrencyConflict

CREDENTIAL_STATUS_FOLDER = "credentials/status"
"""Route prefix the status lists are published under"""

_logger = logging.getLogger(__name__)


class FilesystemBackend(CredentialStatusBackend):
    kind = BackendKind.filesystem

    def __init__(self, status_dir: str | Path, issuer_base_url: str) -> None:
        self.status_dir = Path(status_dir)
        self.issuer_base_url = issuer_base_url.rstrip("/")

    def get_credential_status_url(self) -> str:
        return f"{self.issuer_base_url}/{CREDENTIAL_STATUS_FOLDER}"

    def status_repo_exists(self) -> bool:
        return (self.status_dir / CREDENTIAL_STATUS_CONFIG_FILE).is_file()

    def create_status_repo(self) -> None:
        try:
            self.status_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise BackendUnavailable(f"Can not create status directory {self.status_dir}: {e}") from e

    def _path(self, path: str) -> Path:
        resolved = self.status_dir / path
        if resolved.parent != self.status_dir or path in ("", ".", ".."):
            raise NotFound(f"Invalid artifact path '{path}'")
        return resolved

    def read_file(self, path: str) -> RawFile:
        file = self._path(path)
        try:
            return RawFile(file.read_text(encoding="utf-8"))
        except FileNotFoundError as e:
            raise NotFound(f"'{path}' does not exist in {self.status_dir}") from e
        except OSError as e:
            raise BackendUnavailable(f"Can not read {file}: {e}") from e

    def _write(self, file: Path, content: str) -> None:
        """Writes to a temporary file first, readers see either the old or the new content"""
        try:
            fd, tmp_name = tempfile.mkstemp(dir=self.status_dir, prefix=f".{file.name}.")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(content)
                os.replace(tmp_name, file)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise BackendUnavailable(f"Can not write {file}: {e}") from e

    def create_file(self, path: str, content: str, message: str) -> None:
        file = self._path(path)
        if file.exists():
            raise OptimisticConcurrencyConflict(f"'{path}' already exists in {self.status_dir}")
        _logger.debug(f"{message} ({file})")
        self._write(file, content)

    def update_file(self, path: str, content: str, message: str, version: str | None = None) -> None:
        file = self._path(path)
        if not file.exists():
            raise NotFound(f"'{path}' does not exist in {self.status_dir}")
        _logger.debug(f"{message} ({file})")
        self._write(file, content)
