# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

import logging
from functools import cache

import httpx

from common import httpx_wrapper
from status_issuer import config as conf
from status_issuer.backend.base import CredentialStatusBackend
from status_issuer.backend.filesystem import FilesystemBackend
from status_issuer.backend.github import GITHUB_HEADERS, GitHubBackend
from status_issuer.backend.gitlab import GitLabBackend

_logger = logging.getLogger(__name__)


def create_backend(config: conf.StatusIssuerConfig, transport: httpx.BaseTransport | None = None) -> CredentialStatusBackend:
    """
    Backend selected by CRED_STATUS_CLIENT_TYPE
    transport replaces the network transport of the http client, used for testing
    """
    match config.client_type:
        case conf.CredentialStatusClientType.github:
            client = httpx_wrapper.create_client(
                config.github_api_url,
                config.cred_status_access_token,
                timeout=config.request_timeout,
                verify=config.enable_ssl_verification,
                headers=GITHUB_HEADERS,
                transport=transport,
            )
            backend = GitHubBackend(
                client,
                repo_owner=config.cred_status_repo_owner,
                repo_name=config.cred_status_repo_name,
                repo_visibility=config.cred_status_repo_visibility,
                branch=config.cred_status_branch,
            )
        case conf.CredentialStatusClientType.gitlab:
            client = httpx_wrapper.create_client(
                config.gitlab_api_url,
                config.cred_status_access_token,
                timeout=config.request_timeout,
                verify=config.enable_ssl_verification,
                transport=transport,
            )
            backend = GitLabBackend(
                client,
                repo_owner=config.cred_status_repo_owner,
                repo_name=config.cred_status_repo_name,
                repo_visibility=config.cred_status_repo_visibility,
                branch=config.cred_status_branch,
                org_id=config.cred_status_repo_org_id,
                repo_id=config.cred_status_repo_id,
            )
        case conf.CredentialStatusClientType.internal:
            backend = FilesystemBackend(config.cred_status_dir, config.get_issuer_base_url())
    _logger.info(f"Using {backend.kind.value} credential status backend {backend.get_credential_status_url()}")
    return backend


@cache
def get_backend() -> CredentialStatusBackend:
    """Backend of the process, its http client is reused by all requests"""
    return create_backend(conf.get_config())
