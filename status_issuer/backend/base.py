# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Contract of the storage backends holding the credential status artifacts.

Three artifacts are kept relative to the backend root:
* config.json: issuance counter and the list new credentials are allocated on
* log.json: append only audit trail of issue / revoke actions
* <list id>: the signed status list credential

Implementations only provide raw file access. Serialization and the
validation of everything read from the backend happen here.
"""

import abc
import json
import logging
from enum import Enum
from typing import Any, Generic, NamedTuple, TypeVar

import pydantic
from pydantic import BaseModel

from common.parsing import object_to_json
from status_issuer.exception import DataCorruption
from status_issuer.models import LogEntry, StatusListConfig, StatusListCredential, utc_timestamp

CREDENTIAL_STATUS_CONFIG_FILE = "config.json"
CREDENTIAL_STATUS_LOG_FILE = "log.json"

_logger = logging.getLogger(__name__)

T = TypeVar("T")


class BackendKind(Enum):
    github = "github"
    gitlab = "gitlab"
    filesystem = "filesystem"


class RawFile(NamedTuple):
    """Content of a file and the version token required to update it"""

    content: str
    version: str | None = None


class Versioned(NamedTuple, Generic[T]):
    """Validated artifact and the version token of the read it came from"""

    data: T
    version: str | None = None


class FileChange(BaseModel):
    """One file of a multi file commit"""

    class Action(Enum):
        create = "create"
        update = "update"

    action: Action
    path: str
    content: str
    version: str | None = None


_log_adapter = pydantic.TypeAdapter(list[LogEntry])


def commit_message(subject: str) -> str:
    return f"[{utc_timestamp()}]: {subject}"


class CredentialStatusBackend(abc.ABC):
    """
    Storage of the credential status artifacts.

    Reads return the version token of the file, updates accept the token of the
    immediately preceding read. A stale token raises OptimisticConcurrencyConflict,
    so does creating a file which already exists.
    """

    kind: BackendKind
    supports_atomic_commit: bool = False
    """Whether `commit_files` writes several files in one atomic commit"""

    @abc.abstractmethod
    def get_credential_status_url(self) -> str:
        """Public base url under which the status lists are reachable by verifiers"""

    @abc.abstractmethod
    def status_repo_exists(self) -> bool:
        pass

    @abc.abstractmethod
    def create_status_repo(self) -> None:
        """Creates the repository, called once at setup time"""

    def setup_credential_status_website(self) -> None:
        """Publishes the repository as website, called once after the artifacts were created"""

    @abc.abstractmethod
    def read_file(self, path: str) -> RawFile:
        """Throws NotFound if the file does not exist"""

    @abc.abstractmethod
    def create_file(self, path: str, content: str, message: str) -> None:
        pass

    @abc.abstractmethod
    def update_file(self, path: str, content: str, message: str, version: str | None = None) -> None:
        pass

    def commit_files(self, changes: list[FileChange], message: str) -> None:
        raise NotImplementedError(f"{type(self).__name__} does not support atomic multi file commits")

    def close(self) -> None:
        """Releases connections held by the backend"""

    # Serialization

    @staticmethod
    def _parse(path: str, raw: RawFile, parser) -> Versioned:
        try:
            data = parser(json.loads(raw.content))
        except (json.JSONDecodeError, pydantic.ValidationError) as e:
            _logger.exception(f"Malformed credential status artifact {path}")
            raise DataCorruption(f"Artifact '{path}' can not be parsed: {e}") from e
        return Versioned(data, raw.version)

    @staticmethod
    def serialize_config(data: StatusListConfig) -> str:
        return object_to_json(data.model_dump(mode="json"))

    @staticmethod
    def serialize_log(data: list[LogEntry]) -> str:
        return object_to_json([entry.to_json() for entry in data])

    @staticmethod
    def serialize_status(data: dict[str, Any]) -> str:
        return object_to_json(data)

    # Config

    def create_config_data(self, data: StatusListConfig) -> None:
        self.create_file(CREDENTIAL_STATUS_CONFIG_FILE, self.serialize_config(data), commit_message("created status credential config"))

    def read_config(self) -> Versioned[StatusListConfig]:
        raw = self.read_file(CREDENTIAL_STATUS_CONFIG_FILE)
        return self._parse(CREDENTIAL_STATUS_CONFIG_FILE, raw, StatusListConfig.model_validate)

    def read_config_data(self) -> StatusListConfig:
        return self.read_config().data

    def update_config_data(self, data: StatusListConfig, version: str | None = None) -> None:
        self.update_file(CREDENTIAL_STATUS_CONFIG_FILE, self.serialize_config(data), commit_message("updated status credential config"), version)

    # Log

    def create_log_data(self, data: list[LogEntry]) -> None:
        self.create_file(CREDENTIAL_STATUS_LOG_FILE, self.serialize_log(data), commit_message("created status log"))

    def read_log(self) -> Versioned[list[LogEntry]]:
        raw = self.read_file(CREDENTIAL_STATUS_LOG_FILE)
        return self._parse(CREDENTIAL_STATUS_LOG_FILE, raw, _log_adapter.validate_python)

    def read_log_data(self) -> list[LogEntry]:
        return self.read_log().data

    def update_log_data(self, data: list[LogEntry], version: str | None = None) -> None:
        self.update_file(CREDENTIAL_STATUS_LOG_FILE, self.serialize_log(data), commit_message("updated status log"), version)

    # Status list credential

    def create_status_data(self, list_id: str, data: dict[str, Any]) -> None:
        self.create_file(list_id, self.serialize_status(data), commit_message("created status credential"))

    def read_status(self, list_id: str) -> Versioned[dict[str, Any]]:
        """Returns the status list credential as stored, after checking its shape"""
        raw = self.read_file(list_id)
        return self._parse(list_id, raw, _validated_status_credential)

    def read_status_data(self, list_id: str) -> dict[str, Any]:
        return self.read_status(list_id).data

    def update_status_data(self, list_id: str, data: dict[str, Any], version: str | None = None) -> None:
        self.update_file(list_id, self.serialize_status(data), commit_message("updated status credential"), version)


def _validated_status_credential(data: object) -> dict[str, Any]:
    StatusListCredential.model_validate(data)
    return data
