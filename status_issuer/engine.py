# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Issuance and revocation of credentials, as called by the http routes
"""

import logging
from functools import cache
from typing import Annotated

from fastapi import Depends

from status_issuer import status_client as sc
from status_issuer.exception import CredentialStatusError, InvalidStatusRequest, IssuanceIncomplete, NotFound
from status_issuer.logging import StatusOperationsLogEntry
from status_issuer.models import CredentialAction, CredentialStatusRequest, SigningOptions

_logger = logging.getLogger(__name__)


def _subject_id(credential: dict) -> str | None:
    subject = credential.get("credentialSubject")
    if isinstance(subject, dict):
        return subject.get("id")
    return None


def _list_id(status: dict) -> str:
    return status["statusListCredential"].rstrip("/").split("/")[-1]


class CredentialStatusEngine:
    def __init__(self, status_client: sc.CredentialStatusClient) -> None:
        self.status_client = status_client

    def setup(self):
        return self.status_client.setup_status_repo()

    def _issuance_failed(self, message: str, step: StatusOperationsLogEntry.Step, status: dict) -> None:
        _logger.exception(message)
        _logger.info(
            StatusOperationsLogEntry(
                message=message,
                status=StatusOperationsLogEntry.Status.error,
                operation=StatusOperationsLogEntry.Operation.issuance,
                step=step,
                status_list_index=status["statusListIndex"],
            )
        )

    def issue_credential(self, credential: dict, options: SigningOptions | None = None) -> dict:
        """
        Attaches a credential status, signs the credential and logs the issuance.
        The allocated index stays allocated if signing or logging fails.
        """
        embedded, _ = self.status_client.embed_status(credential)
        status = embedded["credentialStatus"]
        list_id = _list_id(status)

        try:
            signed = self.status_client.key_conf.sign(embedded, options)
        except Exception as e:
            self._issuance_failed("Signing of the issued credential failed.", StatusOperationsLogEntry.Step.signing, status)
            raise IssuanceIncomplete(f"Signing failed: {e}", credential_status=status) from e

        entry = self.status_client.create_log_entry(
            CredentialAction.issued,
            list_id,
            status["statusListIndex"],
            credential_id=credential.get("id") or status["id"],
            credential_subject=_subject_id(credential),
        )
        try:
            self.status_client.append_log_entry(entry)
        except CredentialStatusError as e:
            self._issuance_failed("Logging of the issued credential failed.", StatusOperationsLogEntry.Step.logging, status)
            raise IssuanceIncomplete(e.error_description, credential_status=status) from e

        _logger.info(
            StatusOperationsLogEntry(
                message="Issued credential.",
                status=StatusOperationsLogEntry.Status.success,
                operation=StatusOperationsLogEntry.Operation.issuance,
                step=StatusOperationsLogEntry.Step.logging,
                status_list_id=list_id,
                status_list_index=status["statusListIndex"],
            )
        )
        return signed

    def revoke_credential(self, list_id: str, list_index: int, credential_id: str | None = None) -> dict:
        """Revokes the index of the status list, returns the updated status list credential"""
        return self.status_client.revoke(list_id, list_index, credential_id).credential

    def update_credential_status(self, request: CredentialStatusRequest) -> dict:
        """Applies the requested status changes to the credential logged under the credential id"""
        unsupported = [update.status for update in request.credentialStatus if update.status != CredentialAction.revoked.value]
        if unsupported:
            raise InvalidStatusRequest(f"Unsupported status {', '.join(unsupported)}, only '{CredentialAction.revoked.value}' is allowed.")

        issued = self.status_client.find_log_entry(request.credentialId)
        credential = None
        for _ in request.credentialStatus:
            credential = self.revoke_credential(issued.list_id, issued.statusListIndex, request.credentialId)
        return credential

    def verify_credential(self, credential: dict) -> dict:
        """
        Verifies the proof of a credential issued by this service and,
        if it carries a credential status, that it is not revoked
        """
        result = self.status_client.key_conf.verify(credential)
        status = credential.get("credentialStatus")
        if not result["verified"] or not isinstance(status, dict):
            return result

        try:
            revoked = self.status_client.is_revoked(_list_id(status), int(status["statusListIndex"]))
        except (KeyError, AttributeError, TypeError, ValueError, NotFound) as e:
            _logger.info(f"Credential status of {credential.get('id')} can not be checked: {e}")
            result["statusResult"] = {"verified": False, "error": str(e)}
        else:
            result["statusResult"] = {"verified": not revoked, "revoked": revoked}
        result["verified"] = result["statusResult"]["verified"]
        return result


@cache
def get_status_engine() -> CredentialStatusEngine:
    return CredentialStatusEngine(sc.get_status_client())


inject = Annotated[CredentialStatusEngine, Depends(get_status_engine)]
