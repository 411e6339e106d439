# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Tests for the http interface using pytest & starlette / fastapi
Runs against a filesystem backend in a temporary directory
"""

import pytest
from fastapi.testclient import TestClient

import common.config
import common.status_list as sl
from status_issuer import engine, signer
from status_issuer import status_client as sc
import status_issuer.config as conf
from status_issuer.backend.filesystem import FilesystemBackend
from status_issuer.status_issuer import app

import status_issuer.test.fakes as fakes

API_KEY = "test_api_key"
HEADERS = {"x-api-key": API_KEY}


@pytest.fixture(scope="module")
def key_conf():
    return fakes.key_configuration()


@pytest.fixture()
def status_client(tmp_path, key_conf) -> sc.CredentialStatusClient:
    client = sc.CredentialStatusClient(FilesystemBackend(tmp_path, fakes.ISSUER_BASE_URL), key_conf)
    client.setup_status_repo()
    return client


@pytest.fixture()
def client(status_client, key_conf, tmp_path, monkeypatch):
    monkeypatch.setenv("EXTERNAL_URL", fakes.ISSUER_BASE_URL)
    monkeypatch.setenv("CRED_STATUS_DIR", str(tmp_path))

    def t_common_config() -> common.config.Config:
        config = common.config.Config()
        config.api_key = API_KEY
        return config

    status_engine = engine.CredentialStatusEngine(status_client)
    app.dependency_overrides[common.config.Config] = t_common_config
    app.dependency_overrides[conf.get_config] = lambda: conf.StatusIssuerConfig().validate()
    app.dependency_overrides[signer.get_key_configuration] = lambda: key_conf
    app.dependency_overrides[sc.get_status_client] = lambda: status_client
    app.dependency_overrides[engine.get_status_engine] = lambda: status_engine
    yield TestClient(app)
    app.dependency_overrides.clear()


def _latest_list(status_client) -> str:
    return status_client.backend.read_config_data().latestList


def test_api_key_required(client):
    for method, url in [("POST", "/credentials/issue"), ("POST", "/credentials/status"), ("PATCH", "/credentials/status/ABC/1"), ("POST", "/verify/credentials")]:
        res = client.request(method, url, json={})
        assert res.status_code == 401, f"{method} {url} must require an api key"
        res = client.request(method, url, json={}, headers={"x-api-key": "wrong"})
        assert res.status_code == 401


def test_issue_revoke_flow(client, status_client, key_conf):
    list_id = _latest_list(status_client)
    res = client.post("/credentials/issue", json={"credential": fakes.UNSIGNED_CREDENTIAL}, headers=HEADERS)
    assert res.status_code == 201, res.text
    credential = res.json()
    assert credential["credentialStatus"]["statusListIndex"] == 1
    assert credential["credentialStatus"]["statusListCredential"] == f"{fakes.ISSUER_BASE_URL}/credentials/status/{list_id}"
    assert key_conf.verify(credential)["verified"]

    # Public status list, no api key needed
    res = client.get(f"/credentials/status/{list_id}")
    assert res.status_code == 200
    assert not sl.from_string(res.json()["credentialSubject"]["encodedList"]).get_bit(1)

    res = client.patch(f"/credentials/status/{list_id}/1", headers=HEADERS)
    assert res.status_code == 200, res.text
    assert sl.from_string(res.json()["credentialSubject"]["encodedList"]).get_bit(1)

    res = client.get(f"/credentials/status/{list_id}")
    assert sl.from_string(res.json()["credentialSubject"]["encodedList"]).get_bit(1)


def test_update_status_by_credential_id(client, status_client):
    list_id = _latest_list(status_client)
    client.post("/credentials/issue", json={"credential": fakes.UNSIGNED_CREDENTIAL}, headers=HEADERS)
    res = client.post(
        "/credentials/status",
        json={"credentialId": fakes.UNSIGNED_CREDENTIAL["id"], "credentialStatus": [{"type": "StatusList2021Credential", "status": "revoked"}]},
        headers=HEADERS,
    )
    assert res.status_code == 200, res.text
    assert res.json()["id"].endswith(f"/{list_id}")
    assert status_client.is_revoked(list_id, 1)


def test_error_rendering(client, status_client):
    res = client.post(
        "/credentials/status",
        json={"credentialId": "urn:unknown", "credentialStatus": [{"status": "revoked"}]},
        headers=HEADERS,
    )
    assert res.status_code == 404
    assert res.json()["error"] == "not_found"
    assert res.json()["partial"] is False
    assert res.headers["Cache-Control"] == "no-store"

    res = client.post(
        "/credentials/status",
        json={"credentialId": "urn:unknown", "credentialStatus": [{"status": "suspended"}]},
        headers=HEADERS,
    )
    assert res.status_code == 400
    assert res.json()["error"] == "invalid_request"

    res = client.patch(f"/credentials/status/{_latest_list(status_client)}/0", headers=HEADERS)
    assert res.status_code == 404

    res = client.get("/credentials/status/UNKNOWN001")
    assert res.status_code == 404

    res = client.post("/credentials/issue", json={"credential": "not an object"}, headers=HEADERS)
    assert res.status_code == 422
    assert "credentialStatus" not in client.get("/credentials/status/UNKNOWN001").json()


def test_incomplete_issuance_reports_allocated_status(client, status_client, key_conf, monkeypatch):
    list_id = _latest_list(status_client)

    def fail(*args, **kwargs):
        raise RuntimeError("signer offline")

    monkeypatch.setattr(key_conf, "sign", fail)
    res = client.post("/credentials/issue", json={"credential": fakes.UNSIGNED_CREDENTIAL}, headers=HEADERS)
    assert res.status_code == 500
    body = res.json()
    assert body["error"] == "issuance_incomplete"
    assert body["partial"] is True
    assert body["credentialStatus"]["statusListIndex"] == 1
    assert body["credentialStatus"]["statusListCredential"] == f"{fakes.ISSUER_BASE_URL}/credentials/status/{list_id}"
    assert status_client.backend.read_config_data().credentialsIssued == 1


def test_health(client):
    for probe in ["liveness", "readiness", "debug"]:
        res = client.get(f"/health/{probe}")
        assert res.status_code == 200, f"{probe}: {res.text}"
        assert all(v == "HEALTHY" for v in res.json().values())


def test_readiness_without_backend(client, tmp_path, key_conf):
    broken = sc.CredentialStatusClient(FilesystemBackend(tmp_path / "missing", fakes.ISSUER_BASE_URL), key_conf)
    app.dependency_overrides[sc.get_status_client] = lambda: broken
    res = client.get("/health/readiness")
    assert res.status_code == 503
    assert res.json()["status_backend_connectivity"] == "UNHEALTHY"


def test_verify_credential(client, status_client):
    credential = client.post("/credentials/issue", json={"credential": fakes.UNSIGNED_CREDENTIAL}, headers=HEADERS).json()
    res = client.post("/verify/credentials", json={"verifiableCredential": credential}, headers=HEADERS)
    assert res.status_code == 200, res.text
    assert res.json()["verified"]
    assert res.json()["statusResult"] == {"verified": True, "revoked": False}

    status = credential["credentialStatus"]
    list_id = status["statusListCredential"].split("/")[-1]
    client.patch(f"/credentials/status/{list_id}/{status['statusListIndex']}", headers=HEADERS)
    res = client.post("/verify/credentials", json={"verifiableCredential": credential}, headers=HEADERS)
    assert not res.json()["verified"]
    assert res.json()["statusResult"] == {"verified": False, "revoked": True}

    tampered = {**credential, "credentialSubject": {"id": "did:example:someone-else"}}
    res = client.post("/verify/credentials", json={"verifiableCredential": tampered}, headers=HEADERS)
    assert res.status_code == 200
    assert not res.json()["verified"]
    assert "statusResult" not in res.json()
