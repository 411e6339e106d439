# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Credential status artifacts kept in a GitLab project published with GitLab Pages.
https://docs.gitlab.com/ee/api/repository_files.html
https://docs.gitlab.com/ee/api/commits.html

The last commit id of a file is its version token. Several files can be
written in one commit, which makes rotation and revocation atomic.
"""

import base64
import logging
import urllib.parse

import httpx

from status_issuer.backend.base import BackendKind, FileChange, RawFile, commit_message
from status_issuer.backend.remote import REPOSITORY_DESCRIPTION, RemoteBackend
from status_issuer.exception import DataCorruption, NotFound

_logger = logging.getLogger(__name__)

CONFLICT_MESSAGES = (
    "A file with this name already exists",
    "has changed since you started editing it",
)
"""Messages of the 400 responses GitLab sends for a stale last_commit_id or an existing file"""

PAGES_INDEX = """<!DOCTYPE html>
<html>
  <head><title>Credential Status</title></head>
  <body><h1>Credential Status</h1></body>
</html>
"""

PAGES_CI = """image: ruby:2.7

pages:
  script:
    - gem install bundler
    - bundle install
    - bundle exec jekyll build -d public
  artifacts:
    paths:
      - public
  rules:
    - if: $CI_COMMIT_BRANCH == $CI_DEFAULT_BRANCH
"""

PAGES_GEMFILE = """source "https://rubygems.org"

gem "jekyll"
"""


class GitLabBackend(RemoteBackend):
    kind = BackendKind.gitlab
    supports_atomic_commit = True
    conflict_status_codes = frozenset({409})

    def _is_conflict(self, response: httpx.Response) -> bool:
        if response.status_code == httpx.codes.BAD_REQUEST:
            return any(message in response.text for message in CONFLICT_MESSAGES)
        return super()._is_conflict(response)

    def __init__(
        self,
        client: httpx.Client,
        repo_owner: str,
        repo_name: str,
        repo_visibility: str = "public",
        branch: str = "main",
        org_id: str | None = None,
        repo_id: str | None = None,
    ) -> None:
        super().__init__(client)
        self.repo_owner = repo_owner
        self.repo_name = repo_name
        self.repo_visibility = repo_visibility
        self.branch = branch
        self._org_id = org_id
        self._repo_id = repo_id

    def get_credential_status_url(self) -> str:
        return f"https://{self.repo_owner}.gitlab.io/{self.repo_name}"

    @property
    def org_id(self) -> str:
        """Id of the group owning the project, looked up by the group path once"""
        if not self._org_id:
            response = self._request("GET", f"/groups/{urllib.parse.quote(self.repo_owner, safe='')}")
            self._org_id = str(response.json()["id"])
        return self._org_id

    def _find_repo_id(self) -> str | None:
        response = self._request(
            "GET",
            f"/groups/{self.org_id}/projects",
            params={"owned": "true", "simple": "true", "search": self.repo_name, "per_page": 100},
        )
        for project in response.json():
            if project.get("name") == self.repo_name or project.get("path") == self.repo_name:
                return str(project["id"])
        return None

    @property
    def repo_id(self) -> str:
        if not self._repo_id:
            self._repo_id = self._find_repo_id()
            if not self._repo_id:
                raise NotFound(f"GitLab project '{self.repo_owner}/{self.repo_name}' does not exist")
        return self._repo_id

    def status_repo_exists(self) -> bool:
        if self._repo_id:
            return True
        self._repo_id = self._find_repo_id()
        return self._repo_id is not None

    def create_status_repo(self) -> None:
        response = self._request(
            "POST",
            "/projects",
            json={
                "name": self.repo_name,
                "namespace_id": self.org_id,
                "visibility": self.repo_visibility,
                "description": REPOSITORY_DESCRIPTION,
            },
        )
        self._repo_id = str(response.json()["id"])
        _logger.info(f"Created status project {self.repo_owner}/{self.repo_name} id={self._repo_id}")

    def setup_credential_status_website(self) -> None:
        """Commits a minimal Jekyll site, the pages job publishes the repository content"""
        self.commit_files(
            [
                FileChange(action=FileChange.Action.create, path="index.html", content=PAGES_INDEX),
                FileChange(action=FileChange.Action.create, path=".gitlab-ci.yml", content=PAGES_CI),
                FileChange(action=FileChange.Action.create, path="Gemfile", content=PAGES_GEMFILE),
            ],
            commit_message("created credential status website"),
        )

    def _file_endpoint(self, path: str) -> str:
        return f"/projects/{self.repo_id}/repository/files/{urllib.parse.quote(path, safe='')}"

    def read_file(self, path: str) -> RawFile:
        data = self._request("GET", self._file_endpoint(path), params={"ref": self.branch}).json()
        try:
            content = base64.b64decode(data["content"]).decode("utf-8")
        except (KeyError, TypeError, ValueError) as e:
            raise DataCorruption(f"GitLab returned unexpected content for '{path}': {e}") from e
        return RawFile(content, data.get("last_commit_id"))

    def create_file(self, path: str, content: str, message: str) -> None:
        self._request(
            "POST",
            self._file_endpoint(path),
            write=True,
            json={"branch": self.branch, "commit_message": message, "content": content},
        )

    def update_file(self, path: str, content: str, message: str, version: str | None = None) -> None:
        body = {"branch": self.branch, "commit_message": message, "content": content}
        if version:
            body["last_commit_id"] = version
        self._request("PUT", self._file_endpoint(path), write=True, json=body)

    def commit_files(self, changes: list[FileChange], message: str) -> None:
        actions = []
        for change in changes:
            action = {"action": change.action.value, "file_path": change.path, "content": change.content}
            if change.version:
                action["last_commit_id"] = change.version
            actions.append(action)
        self._request(
            "POST",
            f"/projects/{self.repo_id}/repository/commits",
            write=True,
            json={"branch": self.branch, "commit_message": message, "actions": actions},
        )
