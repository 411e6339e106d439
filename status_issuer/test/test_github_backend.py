# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

import base64
import json

import httpx
import pytest

from common import httpx_wrapper
from status_issuer.backend.github import GITHUB_HEADERS, GitHubBackend
from status_issuer.exception import BackendUnavailable, NotFound, OptimisticConcurrencyConflict
from status_issuer.models import StatusListConfig

import status_issuer.test.fakes as fakes


@pytest.fixture()
def api() -> fakes.FakeGitHubApi:
    return fakes.FakeGitHubApi()


@pytest.fixture()
def backend(api) -> GitHubBackend:
    client = httpx_wrapper.create_client("https://api.github.com", "token", timeout=6, headers=GITHUB_HEADERS, transport=api.transport())
    backend = GitHubBackend(client, repo_owner=api.owner, repo_name=api.repo)
    yield backend
    backend.close()


def test_provisioning(api, backend):
    assert not backend.status_repo_exists()
    backend.create_status_repo()
    assert backend.status_repo_exists()
    create = api.requests[1]
    assert create.method == "POST"
    assert create.url.path == f"/orgs/{api.owner}/repos"
    assert json.loads(create.content)["visibility"] == "public"
    assert create.headers["Authorization"] == "Bearer token"
    assert create.headers["Accept"] == "application/vnd.github+json"

    backend.setup_credential_status_website()
    assert api.pages_enabled
    assert json.loads(api.requests[-1].content) == {"source": {"branch": "main", "path": "/"}}
    # Enabling twice is no error
    backend.setup_credential_status_website()


def test_read_write(api, backend):
    api.repo_exists = True
    backend.create_config_data(StatusListConfig(credentialsIssued=0, latestList="V27UAUYPNR"))
    put = api.requests[-1]
    body = json.loads(put.content)
    assert put.method == "PUT"
    assert put.url.path == f"/repos/{api.owner}/{api.repo}/contents/config.json"
    assert body["branch"] == "main"
    assert "sha" not in body
    assert json.loads(base64.b64decode(body["content"])) == {"credentialsIssued": 0, "latestList": "V27UAUYPNR"}

    config, sha = backend.read_config()
    assert config.latestList == "V27UAUYPNR"
    assert sha == api.files["config.json"][1]
    assert api.requests[-1].url.params["ref"] == "main"

    backend.update_config_data(StatusListConfig(credentialsIssued=1, latestList="V27UAUYPNR"), sha)
    assert json.loads(api.requests[-1].content)["sha"] == sha
    assert api.content("config.json")["credentialsIssued"] == 1


def test_stale_sha_is_a_conflict(api, backend):
    api.repo_exists = True
    backend.create_config_data(StatusListConfig(credentialsIssued=0, latestList="V27UAUYPNR"))
    _, sha = backend.read_config()
    backend.update_config_data(StatusListConfig(credentialsIssued=1, latestList="V27UAUYPNR"), sha)
    with pytest.raises(OptimisticConcurrencyConflict) as e:
        backend.update_config_data(StatusListConfig(credentialsIssued=2, latestList="V27UAUYPNR"), sha)
    assert e.value.retryable
    assert api.content("config.json")["credentialsIssued"] == 1


def test_update_without_sha_reads_it(api, backend):
    api.repo_exists = True
    backend.create_config_data(StatusListConfig(credentialsIssued=0, latestList="V27UAUYPNR"))
    backend.update_config_data(StatusListConfig(credentialsIssued=5, latestList="V27UAUYPNR"))
    assert api.content("config.json")["credentialsIssued"] == 5


def test_create_existing_is_a_conflict(api, backend):
    api.repo_exists = True
    backend.create_log_data([])
    with pytest.raises(OptimisticConcurrencyConflict):
        backend.create_log_data([])


def test_missing_file(api, backend):
    api.repo_exists = True
    with pytest.raises(NotFound):
        backend.read_status_data("UNKNOWN")


def test_server_error():
    transport = httpx.MockTransport(lambda request: httpx.Response(502, text="Bad Gateway"))
    backend = GitHubBackend(httpx_wrapper.create_client("https://api.github.com", "token", timeout=6, transport=transport), "example-org", "credential-status")
    with pytest.raises(BackendUnavailable) as e:
        backend.read_config_data()
    assert "502" in e.value.error_description


def test_connection_error():
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("Connection refused", request=request)

    backend = GitHubBackend(httpx_wrapper.create_client("https://api.github.com", "token", timeout=6, transport=httpx.MockTransport(refuse)), "example-org", "credential-status")
    with pytest.raises(BackendUnavailable) as e:
        backend.status_repo_exists()
    assert isinstance(e.value.__cause__, httpx.ConnectError)
