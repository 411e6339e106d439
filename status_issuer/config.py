# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

import os
from enum import Enum
from functools import cache
from typing import Annotated

from fastapi import Depends

import common.config as conf
from status_issuer.exception import ConfigurationError

DEFAULT_STATUS_LIST_CAPACITY = 100000
"""Number of credentials tracked in a list"""

GITHUB_API_URL = "https://api.github.com"
GITLAB_API_URL = "https://gitlab.com/api/v4"


class CredentialStatusClientType(Enum):
    github = "github"
    gitlab = "gitlab"
    internal = "internal"
    """Status lists kept in a local directory and served by this service"""


class StatusIssuerConfig(conf.Config):
    def __init__(self):
        super().__init__()
        self.app_name = os.getenv("APP_NAME", "Credential Status Issuer")

        # Backend
        self.cred_status_client_type = os.getenv("CRED_STATUS_CLIENT_TYPE", CredentialStatusClientType.internal.value).lower()
        self.cred_status_repo_name = os.getenv("CRED_STATUS_REPO_NAME", "credential-status")
        self.cred_status_repo_owner = os.getenv("CRED_STATUS_REPO_OWNER")
        """GitHub organization or GitLab group owning the status repository"""
        self.cred_status_repo_org_id = os.getenv("CRED_STATUS_REPO_ORG_ID")
        """GitLab group id, looked up by the group name if not set"""
        self.cred_status_repo_id = os.getenv("CRED_STATUS_REPO_ID")
        """GitLab project id, looked up by the repository name if not set"""
        self.cred_status_repo_visibility = os.getenv("CRED_STATUS_REPO_VISIBILITY", "public")
        self.cred_status_access_token = os.getenv("CRED_STATUS_ACCESS_TOKEN")
        self.cred_status_branch = os.getenv("CRED_STATUS_BRANCH", "main")
        self.cred_status_dir = os.getenv("CRED_STATUS_DIR", "credentials/status")
        """Directory holding the status artifacts for the internal client"""
        self.github_api_url = os.getenv("GITHUB_API_URL", GITHUB_API_URL)
        self.gitlab_api_url = os.getenv("GITLAB_API_URL", GITLAB_API_URL)
        self.request_timeout = float(os.getenv("CRED_STATUS_REQUEST_TIMEOUT", "6"))
        """Seconds until a call to the GitHub / GitLab API is aborted"""
        self.conflict_retries = int(os.getenv("CRED_STATUS_CONFLICT_RETRIES", "3"))
        """How often an update is reapplied after a concurrent modification was detected"""

        # Status List
        self.status_list_capacity = int(os.getenv("STATUS_LIST_CAPACITY", str(DEFAULT_STATUS_LIST_CAPACITY)))

        # Signing
        self.key_folder = os.getenv("SIGNING_KEY_FOLDER", "cert")

    @property
    def client_type(self) -> CredentialStatusClientType:
        try:
            return CredentialStatusClientType(self.cred_status_client_type)
        except ValueError:
            allowed = ", ".join(t.value for t in CredentialStatusClientType)
            raise ConfigurationError(f"Environment variable 'CRED_STATUS_CLIENT_TYPE' must be one of {allowed}, got '{self.cred_status_client_type}'")

    def get_issuer_base_url(self) -> str:
        return self.external_url.rstrip("/")

    def validate(self) -> "StatusIssuerConfig":
        """
        Checks the settings required by the configured client type
        Throws ConfigurationError naming the first missing environment variable
        """
        required = {"CRED_STATUS_REPO_NAME": self.cred_status_repo_name}
        match self.client_type:
            case CredentialStatusClientType.github:
                required["CRED_STATUS_REPO_OWNER"] = self.cred_status_repo_owner
                required["CRED_STATUS_ACCESS_TOKEN"] = self.cred_status_access_token
            case CredentialStatusClientType.gitlab:
                required["CRED_STATUS_REPO_OWNER"] = self.cred_status_repo_owner
                required["CRED_STATUS_ACCESS_TOKEN"] = self.cred_status_access_token
            case CredentialStatusClientType.internal:
                required = {"EXTERNAL_URL": self.external_url, "CRED_STATUS_DIR": self.cred_status_dir}
        for env_var, value in required.items():
            if not value:
                raise ConfigurationError(f"Environment variable '{env_var}' is not set")
        if self.status_list_capacity < 1:
            raise ConfigurationError(f"Environment variable 'STATUS_LIST_CAPACITY' must be positive, got {self.status_list_capacity}")
        return self


@cache
def get_config() -> StatusIssuerConfig:
    """Configuration of the process, read once from the environment"""
    return StatusIssuerConfig().validate()


inject = Annotated[StatusIssuerConfig, Depends(get_config)]
