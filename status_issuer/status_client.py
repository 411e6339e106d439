# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Management of the credential status artifacts on top of a storage backend.

Config, log and status lists are separate artifacts. Updates follow this order:
* rotation: the new, signed and empty status list is created before config.json points to it
* issuance: config.json is incremented before the credential is signed and logged
* revocation: the status list is updated before the revocation is logged

A failure between two steps leaves the artifacts in a state `sync_status_repo_state`
detects and repairs. Backends with atomic commits write rotation and revocation in one commit.
"""

import copy
import logging
import secrets
import string
import threading
from functools import cache
from typing import Annotated, Any, Callable, NamedTuple, TypeVar

from fastapi import Depends

import common.status_list as sl
from status_issuer import config as conf
from status_issuer import signer
from status_issuer.backend.base import (
    CREDENTIAL_STATUS_CONFIG_FILE,
    CREDENTIAL_STATUS_LOG_FILE,
    CredentialStatusBackend,
    FileChange,
    commit_message,
)
from status_issuer.backend.factory import get_backend
from status_issuer.exception import (
    CredentialStatusError,
    DataCorruption,
    NotFound,
    OptimisticConcurrencyConflict,
    RevocationIncomplete,
    SigningError,
)
from status_issuer.logging import StatusOperationsLogEntry
from status_issuer.models import (
    CREDENTIALS_CONTEXT_V1,
    STATUS_PURPOSE_REVOCATION,
    CredentialAction,
    LogEntry,
    ReconciliationReport,
    StatusListConfig,
    utc_timestamp,
)

_logger = logging.getLogger(__name__)

STATUS_LIST_ID_ALPHABET = string.digits + string.ascii_uppercase
STATUS_LIST_ID_LENGTH = 10

T = TypeVar("T")


def generate_status_list_id() -> str:
    """Random base-36 id of a status list, e.g. V27UAUYPNR"""
    return "".join(secrets.choice(STATUS_LIST_ID_ALPHABET) for _ in range(STATUS_LIST_ID_LENGTH))


class EmbedResult(NamedTuple):
    credential: dict[str, Any]
    """Credential with the attached credentialStatus"""
    new_list: str | None = None
    """Id of the status list created for this credential, if the previous list was full"""


class RevocationResult(NamedTuple):
    credential: dict[str, Any]
    """Signed status list credential holding the revocation"""
    log_entry: LogEntry


class CredentialStatusClient:
    """
    Allocates status list indices and revokes them.

    One instance is shared by all requests of the process. Its lock serializes
    all writes of the process, conflicts with other writers are detected by the
    backend version tokens and retried `conflict_retries` times.
    """

    def __init__(
        self,
        backend: CredentialStatusBackend,
        key_conf: signer.KeyConfiguration,
        capacity: int = conf.DEFAULT_STATUS_LIST_CAPACITY,
        conflict_retries: int = 3,
    ) -> None:
        self.backend = backend
        self.key_conf = key_conf
        self.capacity = capacity
        self.conflict_retries = conflict_retries
        self.list_length = sl.list_length_for_capacity(capacity)
        """Length of lists created by this client, existing lists keep their own length"""
        self._list_lengths: dict[str, int] = {}
        self._lock = threading.RLock()

    def status_list_credential_url(self, list_id: str) -> str:
        return f"{self.backend.get_credential_status_url()}/{list_id}"

    def _with_conflict_retry(self, operation: Callable[[], T], description: str) -> T:
        """Runs the read-modify-write operation again while it hits concurrent modifications"""
        for attempt in range(self.conflict_retries + 1):
            try:
                return operation()
            except OptimisticConcurrencyConflict:
                if attempt >= self.conflict_retries:
                    _logger.error(f"Giving up {description} after {attempt + 1} concurrent modifications")
                    raise
                _logger.warning(f"Concurrent modification during {description}, retrying ({attempt + 1}/{self.conflict_retries})")

    def _sign(self, credential: dict) -> dict:
        try:
            return self.key_conf.sign(credential)
        except Exception as e:
            _logger.exception(f"Signing of {credential.get('id')} failed")
            raise SigningError(str(e)) from e

    ##########################
    # Status list credential #
    ##########################

    def compose_status_credential(self, list_id: str, status_list: sl.StatusList2021 | None = None, status_purpose: str = STATUS_PURPOSE_REVOCATION) -> dict:
        """Signed StatusList2021Credential, for a new empty list if no status list is given"""
        if status_list is None:
            status_list = sl.create_empty(self.list_length)
        credential_id = self.status_list_credential_url(list_id)
        credential = {
            "@context": [CREDENTIALS_CONTEXT_V1, sl.STATUS_LIST_CONTEXT_V1],
            "id": credential_id,
            "type": ["VerifiableCredential", "StatusList2021Credential"],
            "issuer": self.key_conf.jwk_did,
            "issuanceDate": utc_timestamp(),
            "credentialSubject": {
                "id": f"{credential_id}#list",
                "type": "StatusList2021",
                "statusPurpose": status_purpose,
                "encodedList": status_list.pack(),
            },
        }
        return self._sign(credential)

    def _decode(self, list_id: str, status_credential: dict) -> sl.StatusList2021:
        try:
            return sl.from_string(status_credential["credentialSubject"]["encodedList"])
        except sl.StatusListDecodingError as e:
            _logger.error(f"Status list {list_id} can not be decoded: {e}")
            raise DataCorruption(f"Status list '{list_id}': {e}") from e

    def get_status_credential(self, list_id: str) -> dict:
        return self.backend.read_status_data(list_id)

    def is_revoked(self, list_id: str, list_index: int) -> bool:
        status_list = self._decode(list_id, self.get_status_credential(list_id))
        self._check_index(list_id, status_list, list_index)
        return status_list.get_bit(list_index)

    def _list_length(self, list_id: str) -> int:
        if list_id not in self._list_lengths:
            self._list_lengths[list_id] = len(self._decode(list_id, self.get_status_credential(list_id)))
        return self._list_lengths[list_id]

    ##############
    # Allocation #
    ##############

    def _create_status_list(self) -> str:
        """Creates a new empty status list under a fresh id, never replaces an existing list"""
        for attempt in range(self.conflict_retries + 1):
            list_id = generate_status_list_id()
            try:
                self.backend.create_status_data(list_id, self.compose_status_credential(list_id))
                return list_id
            except OptimisticConcurrencyConflict:
                if attempt >= self.conflict_retries:
                    raise
                _logger.warning(f"Status list id {list_id} is already taken, generating a new one")

    def _allocate(self) -> tuple[StatusListConfig, str | None]:
        config, version = self.backend.read_config()
        next_index = config.credentialsIssued + 1
        if next_index <= self.capacity and next_index < self._list_length(config.latestList):
            updated = StatusListConfig(credentialsIssued=next_index, latestList=config.latestList)
            self.backend.update_config_data(updated, version)
            return updated, None

        if self.backend.supports_atomic_commit:
            new_list = generate_status_list_id()
            updated = StatusListConfig(credentialsIssued=1, latestList=new_list)
            self.backend.commit_files(
                [
                    FileChange(
                        action=FileChange.Action.create,
                        path=new_list,
                        content=self.backend.serialize_status(self.compose_status_credential(new_list)),
                    ),
                    FileChange(
                        action=FileChange.Action.update,
                        path=CREDENTIAL_STATUS_CONFIG_FILE,
                        content=self.backend.serialize_config(updated),
                        version=version,
                    ),
                ],
                commit_message(f"rotated status list {config.latestList} to {new_list}"),
            )
        else:
            new_list = self._create_status_list()
            updated = StatusListConfig(credentialsIssued=1, latestList=new_list)
            self.backend.update_config_data(updated, version)
        _logger.info(
            StatusOperationsLogEntry(
                message=f"Status list {config.latestList} is full, rotated to {new_list}.",
                status=StatusOperationsLogEntry.Status.success,
                operation=StatusOperationsLogEntry.Operation.issuance,
                step=StatusOperationsLogEntry.Step.rotation,
                status_list_id=new_list,
            )
        )
        return updated, new_list

    def embed_status(self, credential: dict, status_purpose: str = STATUS_PURPOSE_REVOCATION) -> EmbedResult:
        """
        Allocates the next index of the latest status list and attaches it as credentialStatus.
        Starts a new list if the latest list is full.
        The allocated index is persisted before this function returns.
        """
        with self._lock:
            config, new_list = self._with_conflict_retry(self._allocate, "status index allocation")

        status_list_credential = self.status_list_credential_url(config.latestList)
        entry = sl.StatusList2021Entry(
            id=f"{status_list_credential}#{config.credentialsIssued}",
            statusPurpose=status_purpose,
            statusListIndex=config.credentialsIssued,
            statusListCredential=status_list_credential,
        )
        _logger.info(
            StatusOperationsLogEntry(
                message="Allocated credential status.",
                status=StatusOperationsLogEntry.Status.success,
                operation=StatusOperationsLogEntry.Operation.issuance,
                step=StatusOperationsLogEntry.Step.allocation,
                status_list_id=config.latestList,
                status_list_index=config.credentialsIssued,
            )
        )

        embedded = copy.deepcopy(credential)
        context = embedded.get("@context", [])
        context = [context] if isinstance(context, str) else list(context)
        if sl.STATUS_LIST_CONTEXT_V1 not in context:
            context.append(sl.STATUS_LIST_CONTEXT_V1)
        embedded["@context"] = context
        embedded["credentialStatus"] = entry.model_dump()
        return EmbedResult(embedded, new_list)

    #######
    # Log #
    #######

    def create_log_entry(
        self,
        action: CredentialAction,
        list_id: str,
        list_index: int,
        credential_id: str | None = None,
        credential_subject: str | None = None,
    ) -> LogEntry:
        return LogEntry(
            credentialId=credential_id,
            credentialSubject=credential_subject,
            action=action,
            issuerDid=self.key_conf.jwk_did,
            verificationMethod=self.key_conf.verification_method,
            statusListId=list_id,
            statusListCredential=self.status_list_credential_url(list_id),
            statusListIndex=list_index,
        )

    def append_log_entry(self, entry: LogEntry) -> None:
        def append():
            log, version = self.backend.read_log()
            self.backend.update_log_data([*log, entry], version)

        with self._lock:
            self._with_conflict_retry(append, "log append")

    def find_log_entry(self, credential_id: str, action: CredentialAction = CredentialAction.issued) -> LogEntry:
        """Latest log entry of the credential with the given action"""
        for entry in reversed(self.backend.read_log_data()):
            if entry.credentialId == credential_id and entry.action == action:
                return entry
        raise NotFound(f"No {action.value} credential with id '{credential_id}'")

    ##############
    # Revocation #
    ##############

    def _check_index(self, list_id: str, status_list: sl.StatusList2021, list_index: int) -> None:
        if not 1 <= list_index < len(status_list):
            raise NotFound(f"Status list index {list_index} is outside of 1..{len(status_list) - 1} of list {list_id}")

    def _revoked_status_credential(self, list_id: str, list_index: int) -> tuple[dict, str | None, bool]:
        """
        Returns the status list credential with the index revoked, its version token
        and whether it differs from the stored credential
        """
        stored, version = self.backend.read_status(list_id)
        status_list = self._decode(list_id, stored)
        self._check_index(list_id, status_list, list_index)
        if status_list.get_bit(list_index):
            return stored, version, False
        status_list.set_bit(list_index, True)
        purpose = stored["credentialSubject"].get("statusPurpose", STATUS_PURPOSE_REVOCATION)
        return self.compose_status_credential(list_id, status_list, purpose), version, True

    def _revoke_atomic(self, list_id: str, list_index: int, entry: LogEntry) -> dict:
        credential, status_version, changed = self._revoked_status_credential(list_id, list_index)
        log, log_version = self.backend.read_log()
        changes = [
            FileChange(
                action=FileChange.Action.update,
                path=CREDENTIAL_STATUS_LOG_FILE,
                content=self.backend.serialize_log([*log, entry]),
                version=log_version,
            )
        ]
        if changed:
            changes.insert(
                0,
                FileChange(
                    action=FileChange.Action.update,
                    path=list_id,
                    content=self.backend.serialize_status(credential),
                    version=status_version,
                ),
            )
        self.backend.commit_files(changes, commit_message(f"revoked index {list_index} of status list {list_id}"))
        return credential

    def _revoke_status(self, list_id: str, list_index: int) -> tuple[dict, bool]:
        credential, version, changed = self._revoked_status_credential(list_id, list_index)
        if changed:
            self.backend.update_status_data(list_id, credential, version)
        return credential, changed

    def revoke(self, list_id: str, list_index: int, credential_id: str | None = None) -> RevocationResult:
        """
        Sets the bit of the index in the status list and logs the revocation.
        Revoking a revoked index does not change the status list, but is logged again.
        """
        if list_index < 1:
            raise NotFound(f"Status list index {list_index} is outside of list {list_id}")
        entry =self.create_log_entry(CredentialAction.revoked, list_id, list_index, credential_id=credential_id)
        with self._lock:
            if self.backend.supports_atomic_commit:
                credential = self._with_conflict_retry(lambda: self._revoke_atomic(list_id, list_index, entry), "revocation")
            else:
                credential, changed = self._with_conflict_retry(lambda: self._revoke_status(list_id, list_index), "revocation")
                try:
                    self.append_log_entry(entry)
                except CredentialStatusError as e:
                    if not changed:
                        raise
                    _logger.exception(f"Index {list_index} of status list {list_id} was revoked, but not logged")
                    raise RevocationIncomplete(f"List {list_id} index {list_index}: {e.error_description}") from e

        _logger.info(
            StatusOperationsLogEntry(
                message="Revoked credential status.",
                status=StatusOperationsLogEntry.Status.success,
                operation=StatusOperationsLogEntry.Operation.revocation,
                step=StatusOperationsLogEntry.Step.persisting,
                status_list_id=list_id,
                status_list_index=list_index,
                credential_id=credential_id,
            )
        )
        return RevocationResult(credential, entry)

    ##################
    # Provisioning   #
    ##################

    def _initialize_artifacts(self) -> str:
        list_id = generate_status_list_id()
        config = StatusListConfig(credentialsIssued=0, latestList=list_id)
        status_credential = self.compose_status_credential(list_id)
        if self.backend.supports_atomic_commit:
            self.backend.commit_files(
                [
                    FileChange(action=FileChange.Action.create, path=list_id, content=self.backend.serialize_status(status_credential)),
                    FileChange(action=FileChange.Action.create, path=CREDENTIAL_STATUS_LOG_FILE, content=self.backend.serialize_log([])),
                    FileChange(action=FileChange.Action.create, path=CREDENTIAL_STATUS_CONFIG_FILE, content=self.backend.serialize_config(config)),
                ],
                commit_message("created credential status artifacts"),
            )
        else:
            self.backend.create_status_data(list_id, status_credential)
            try:
                self.backend.create_log_data([])
            except OptimisticConcurrencyConflict:
                _logger.info("Status log already exists, keeping it")
            self.backend.create_config_data(config)
        return list_id

    def setup_status_repo(self) -> ReconciliationReport:
        """
        Creates the status repository with an empty status list on the first start,
        reconciles the existing artifacts otherwise
        """
        with self._lock:
            if not self.backend.status_repo_exists():
                self.backend.create_status_repo()
            try:
                self.backend.read_config()
            except NotFound:
                list_id = self._initialize_artifacts()
                self.backend.setup_credential_status_website()
                _logger.info(
                    StatusOperationsLogEntry(
                        message="Created credential status artifacts.",
                        status=StatusOperationsLogEntry.Status.success,
                        operation=StatusOperationsLogEntry.Operation.provisioning,
                        step=StatusOperationsLogEntry.Step.persisting,
                        status_list_id=list_id,
                    )
                )
                return ReconciliationReport(latestList=list_id, credentialsIssued=0)
            return self.sync_status_repo_state()

    def sync_status_repo_state(self) -> ReconciliationReport:
        """
        Repairs the state left behind by an interrupted issuance or rotation
        * a missing latest status list is created
        * a counter behind the logged issuances is advanced, indices are never handed out twice
        * indices allocated but never logged are reported, they stay allocated
        """
        with self._lock:
            config, version = self.backend.read_config()
            report = ReconciliationReport(latestList=config.latestList, credentialsIssued=config.credentialsIssued)

            try:
                self.backend.read_status(config.latestList)
            except NotFound:
                _logger.warning(f"Latest status list {config.latestList} is missing, creating it")
                self.backend.create_status_data(config.latestList, self.compose_status_credential(config.latestList))
                report.createdMissingList = True

            report.highestLoggedIndex = max(
                (
                    entry.statusListIndex
                    for entry in self.backend.read_log_data()
                    if entry.action == CredentialAction.issued and entry.list_id == config.latestList
                ),
                default=0,
            )
            if report.highestLoggedIndex > config.credentialsIssued:
                _logger.warning(f"Issuance counter {config.credentialsIssued} is behind the log, advancing to {report.highestLoggedIndex}")
                self.backend.update_config_data(StatusListConfig(credentialsIssued=report.highestLoggedIndex, latestList=config.latestList), version)
                report.credentialsIssued = report.highestLoggedIndex
                report.repairedCounter = True
            elif config.credentialsIssued > report.highestLoggedIndex:
                report.unloggedIndices = config.credentialsIssued - report.highestLoggedIndex

            _logger.info(
                StatusOperationsLogEntry(
                    message=f"Reconciled credential status artifacts, {report.unloggedIndices} allocated indices were never logged.",
                    status=StatusOperationsLogEntry.Status.success,
                    operation=StatusOperationsLogEntry.Operation.provisioning,
                    step=StatusOperationsLogEntry.Step.reconciliation,
                    status_list_id=config.latestList,
                    status_list_index=report.credentialsIssued,
                )
            )
            return report


@cache
def get_status_client() -> CredentialStatusClient:
    """Status client of the process, shared by all requests"""
    config = conf.get_config()
    return CredentialStatusClient(
        backend=get_backend(),
        key_conf=signer.get_key_configuration(),
        capacity=config.status_list_capacity,
        conflict_retries=config.conflict_retries,
    )


inject = Annotated[CredentialStatusClient, Depends(get_status_client)]
