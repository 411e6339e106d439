# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""Shared request handling for backends hosted by a git service API"""

import logging

import httpx

from common import httpx_wrapper
from status_issuer.backend.base import CredentialStatusBackend
from status_issuer.exception import BackendUnavailable, NotFound, OptimisticConcurrencyConflict

_logger = logging.getLogger(__name__)

REPOSITORY_DESCRIPTION = "Manages credential status for an instance of the credential status issuer"


class RemoteBackend(CredentialStatusBackend):
    """Backend talking to a REST API with a single, process wide httpx client"""

    conflict_status_codes: frozenset[int] = frozenset({409})
    """Status codes of write requests signaling a concurrent modification"""

    def __init__(self, client: httpx.Client) -> None:
        self.client = client

    def close(self) -> None:
        self.client.close()

    def _is_conflict(self, response: httpx.Response) -> bool:
        return response.status_code in self.conflict_status_codes

    def _request(self, method: str, url: str, write: bool = False, **kwargs) -> httpx.Response:
        """
        Sends the request and maps failures to credential status errors
        * transport errors & unexpected status codes: BackendUnavailable
        * 404: NotFound
        * conflict status codes on write requests: OptimisticConcurrencyConflict
        """
        try:
            response = httpx_wrapper.send(self.client, method, url, **kwargs)
        except httpx.TransportError as e:
            _logger.exception(f"Credential status backend can not be reached {method} {url}")
            raise BackendUnavailable(f"{method} {url} failed: {e}") from e

        if response.status_code == httpx.codes.NOT_FOUND:
            raise NotFound(f"{method} {url} returned 404")
        if write and self._is_conflict(response):
            raise OptimisticConcurrencyConflict(f"{method} {url} returned {response.status_code}: {response.text}")
        if response.is_error:
            _logger.error(f"Credential status backend rejected {method} {url} {response.status_code=} {response.text}")
            raise BackendUnavailable(f"{method} {url} returned {response.status_code}: {response.text}")
        return response
