# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Errors raised while managing the credential status artifacts.

Every error tells the caller whether persisted state was already changed
when the operation failed (`partial`). Config, log and status list are
separate artifacts, so an operation can fail after some of them were written.
"""


class CredentialStatusError(Exception):
    """Base class for all credential status errors."""

    error: str = "credential_status_error"
    """Machine readable code identifieng the exception."""

    error_description: str = "The credential status operation failed."
    """Human readable error description for the error type."""

    status_code: int = 500
    """Status code for the rendered response."""

    retryable: bool = False

    credential_status: dict | None = None
    """Status entry allocated before the operation failed, rendered as credentialStatus."""

    def __init__(self, additional_error_description: str = None, partial: bool = False) -> None:
        """Create a credential status error.

        Args:
            additional_error_description (str, optional): Additional, human readable data, to identify the issue resulting in this exception.
            partial (bool, optional): True if some artifacts were already persisted. Defaults to False.
        """
        if additional_error_description:
            self.error_description = f"{self.error_description} {additional_error_description}"
        self.partial = partial
        super().__init__(self.error_description)


class ConfigurationError(CredentialStatusError):
    """Required settings are missing, raised at process start"""

    error = "configuration_error"
    error_description = "The service is not configured correctly."


class BackendUnavailable(CredentialStatusError):
    """Reading or writing an artifact failed on the network or filesystem level"""

    error = "backend_unavailable"
    error_description = "The credential status backend could not be reached."


class NotFound(CredentialStatusError):
    """Unknown status list, unknown credential or index outside the list"""

    error = "not_found"
    error_description = "The requested credential status could not be found."
    status_code = 404


class OptimisticConcurrencyConflict(CredentialStatusError):
    """The artifact was changed by another writer since it was read"""

    error = "concurrent_modification"
    error_description = "The credential status artifact was modified concurrently."
    status_code = 409
    retryable = True


class DataCorruption(CredentialStatusError):
    """A persisted artifact does not have the expected shape"""

    error = "data_corruption"
    error_description = "A credential status artifact is malformed."


class SigningError(CredentialStatusError):
    """The signer failed to produce a proof"""

    error = "signing_error"
    error_description = "The credential could not be signed."


class IssuanceIncomplete(CredentialStatusError):
    """
    The status index was allocated, but the credential was not signed or not logged.
    The issuance counter is not rolled back.
    """

    error = "issuance_incomplete"
    error_description = "The status index was allocated but the issuance did not complete."

    def __init__(self, additional_error_description: str = None, credential_status: dict | None = None) -> None:
        super().__init__(additional_error_description, partial=True)
        self.credential_status = credential_status


class RevocationIncomplete(CredentialStatusError):
    """The status list was updated, but the revocation could not be logged"""

    error = "revocation_incomplete"
    error_description = "The status list was updated but the revocation was not logged."

    def __init__(self, additional_error_description: str = None) -> None:
        super().__init__(additional_error_description, partial=True)


class InvalidStatusRequest(CredentialStatusError):
    """The requested status change is not supported"""

    error = "invalid_request"
    error_description = "The requested status change is not supported."
    status_code = 400
