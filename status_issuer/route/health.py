# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""This file defines the custom health checks for the application."""
import logging

from fastapi import Response

from common import health
import status_issuer.config as conf
from status_issuer import signer
from status_issuer import status_client as sc
from status_issuer.exception import CredentialStatusError

_logger = logging.getLogger(__name__)


class DebugHealthResponse(health.HealthResponse):
    """Response body model for health request operation."""

    config_client_type_valid: health.HealthStatus = health.HealthStatus.unhealthy
    latest_status_list_present: health.HealthStatus = health.HealthStatus.unhealthy


class ReadinessHealthResponse(health.HealthResponse):
    """Response body model for health request operation."""

    status_backend_connectivity: health.HealthStatus = health.HealthStatus.unhealthy


class LivelinessHealthResponse(health.HealthResponse):
    """Response body model for health request operation."""

    signing_key_is_available: health.HealthStatus = health.HealthStatus.unhealthy


class StatusIssuerHealthAPIRouter(health.HealthAPIRouter):
    def __init__(self) -> None:
        super().__init__(
            readiness_response_model=ReadinessHealthResponse,
            liveness_response_model=LivelinessHealthResponse,
            debug_response_model=DebugHealthResponse,
        )

    def get_readiness_probe(self, response: Response, status_client: sc.inject) -> ReadinessHealthResponse:
        """Determines whether the application instance is ready to accept requests."""
        result = ReadinessHealthResponse()
        try:
            status_client.backend.read_config()
            result.status_backend_connectivity = True
        except CredentialStatusError:
            _logger.exception(f"Health check for {status_client.backend.kind.value} credential status backend errors.")
        return self.resolve_probe(result, response)

    def get_liveness_probe(self, response: Response, key_conf: signer.inject) -> LivelinessHealthResponse:
        """Provides information regarding issues which could be
        resolved through a application instance restart."""
        result = LivelinessHealthResponse()
        try:
            result.signing_key_is_available = bool(key_conf.jwk_did)
        except Exception:
            _logger.exception("Cannot get signing public key.")
        return self.resolve_probe(result, response)

    def get_debug_probe(self, response: Response, config: conf.inject, status_client: sc.inject) -> DebugHealthResponse:
        result = DebugHealthResponse()
        try:
            config.client_type
            result.config_client_type_valid = True
        except CredentialStatusError:
            _logger.exception("Invalid credential status client type.")
        try:
            latest_list = status_client.backend.read_config_data().latestList
            status_client.get_status_credential(latest_list)
            result.latest_status_list_present = True
        except CredentialStatusError:
            _logger.exception("Error in health checking the latest status list.")
        return self.resolve_probe(result, response)


router = StatusIssuerHealthAPIRouter()
