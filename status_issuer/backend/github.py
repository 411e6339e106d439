# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Credential status artifacts kept in a GitHub repository published with GitHub Pages.
https://docs.github.com/en/rest/repos/contents

Every file is written with its own commit. The blob sha returned by a read is
the version token of the following update. GitHub offers no multi file commit
through the contents API, so config, log and status lists are updated independently.
"""

import base64
import logging
import urllib.parse

import httpx

from status_issuer.backend.base import BackendKind, RawFile
from status_issuer.backend.remote import REPOSITORY_DESCRIPTION, RemoteBackend
from status_issuer.exception import DataCorruption, NotFound, OptimisticConcurrencyConflict

_logger = logging.getLogger(__name__)

GITHUB_HEADERS = {
    "Accept": "application/vnd.github+json",
    "X-GitHub-Api-Version": "2022-11-28",
}


class GitHubBackend(RemoteBackend):
    kind = BackendKind.github
    # 409: sha does not match, 422: sha missing for an existing file
    conflict_status_codes = frozenset({409, 422})

    def __init__(self, client: httpx.Client, repo_owner: str, repo_name: str, repo_visibility: str = "public", branch: str = "main") -> None:
        super().__init__(client)
        self.repo_owner = repo_owner
        self.repo_name = repo_name
        self.repo_visibility = repo_visibility
        self.branch = branch

    def get_credential_status_url(self) -> str:
        return f"https://{self.repo_owner}.github.io/{self.repo_name}"

    def _repo_endpoint(self) -> str:
        return f"/repos/{self.repo_owner}/{self.repo_name}"

    def _contents_endpoint(self, path: str) -> str:
        return f"{self._repo_endpoint()}/contents/{urllib.parse.quote(path)}"

    def status_repo_exists(self) -> bool:
        try:
            self._request("GET", self._repo_endpoint())
        except NotFound:
            return False
        return True

    def create_status_repo(self) -> None:
        self._request(
            "POST",
            f"/orgs/{self.repo_owner}/repos",
            json={
                "name": self.repo_name,
                "visibility": self.repo_visibility,
                "description": REPOSITORY_DESCRIPTION,
            },
        )
        _logger.info(f"Created status repository {self.repo_owner}/{self.repo_name}")

    def setup_credential_status_website(self) -> None:
        """Enables GitHub Pages for the root of the status branch"""
        try:
            self._request(
                "POST",
                f"{self._repo_endpoint()}/pages",
                write=True,
                json={"source": {"branch": self.branch, "path": "/"}},
            )
        except OptimisticConcurrencyConflict:
            _logger.info(f"GitHub Pages already enabled for {self.repo_owner}/{self.repo_name}")

    def _read_contents(self, path: str) -> dict:
        response = self._request("GET", self._contents_endpoint(path), params={"ref": self.branch})
        return response.json()

    def read_file(self, path: str) -> RawFile:
        data = self._read_contents(path)
        try:
            content = base64.b64decode("".join(data["content"].split())).decode("utf-8")
        except (KeyError, TypeError, ValueError) as e:
            raise DataCorruption(f"GitHub returned unexpected content for '{path}': {e}") from e
        return RawFile(content, data.get("sha"))

    def _put(self, path: str, content: str, message: str, sha: str | None) -> None:
        body = {
            "message": message,
            "content": base64.b64encode(content.encode("utf-8")).decode(),
            "branch": self.branch,
        }
        if sha:
            body["sha"] = sha
        self._request("PUT", self._contents_endpoint(path), write=True, json=body)

    def create_file(self, path: str, content: str, message: str) -> None:
        self._put(path, content, message, sha=None)

    def update_file(self, path: str, content: str, message: str, version: str | None = None) -> None:
        if version is None:
            # GitHub requires the sha of the replaced blob
            version = self._read_contents(path).get("sha")
        self._put(path, content, message, sha=version)
