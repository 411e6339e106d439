# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

import json

import pytest

from status_issuer.backend.filesystem import FilesystemBackend
from status_issuer.exception import DataCorruption, NotFound, OptimisticConcurrencyConflict
from status_issuer.models import CredentialAction, LogEntry, StatusListConfig

import status_issuer.test.fakes as fakes


@pytest.fixture()
def backend(tmp_path) -> FilesystemBackend:
    return FilesystemBackend(tmp_path / "status", fakes.ISSUER_BASE_URL)


def test_repo_exists_once_config_is_written(backend):
    assert not backend.status_repo_exists()
    backend.create_status_repo()
    assert backend.status_dir.is_dir()
    assert not backend.status_repo_exists()
    backend.create_config_data(StatusListConfig(credentialsIssued=0, latestList="V27UAUYPNR"))
    assert backend.status_repo_exists()
    assert backend.get_credential_status_url() == f"{fakes.ISSUER_BASE_URL}/credentials/status"


def test_config_roundtrip(backend):
    backend.create_status_repo()
    backend.create_config_data(StatusListConfig(credentialsIssued=0, latestList="V27UAUYPNR"))
    backend.update_config_data(StatusListConfig(credentialsIssued=1, latestList="V27UAUYPNR"))
    assert backend.read_config_data() == StatusListConfig(credentialsIssued=1, latestList="V27UAUYPNR")
    stored = json.loads((backend.status_dir / "config.json").read_text())
    assert stored == {"credentialsIssued": 1, "latestList": "V27UAUYPNR"}
    assert backend.read_config().version is None


def test_log_roundtrip(backend):
    backend.create_status_repo()
    backend.create_log_data([])
    entry = LogEntry(
        credentialId="urn:uuid:1",
        action=CredentialAction.issued,
        issuerDid="did:jwk:abc",
        verificationMethod="did:jwk:abc#0",
        statusListCredential=f"{backend.get_credential_status_url()}/V27UAUYPNR",
        statusListIndex=1,
    )
    backend.update_log_data([entry])
    log = backend.read_log_data()
    assert log == [entry]
    assert log[0].list_id == "V27UAUYPNR"
    stored = json.loads((backend.status_dir / "log.json").read_text())
    assert stored[0]["action"] == "issued"
    assert "credentialSubject" not in stored[0]


def test_create_never_overwrites(backend):
    backend.create_status_repo()
    backend.create_log_data([])
    with pytest.raises(OptimisticConcurrencyConflict):
        backend.create_log_data([])


def test_missing_artifacts(backend):
    backend.create_status_repo()
    with pytest.raises(NotFound):
        backend.read_config_data()
    with pytest.raises(NotFound):
        backend.read_status_data("UNKNOWN")
    with pytest.raises(NotFound):
        backend.update_config_data(StatusListConfig(credentialsIssued=1, latestList="V27UAUYPNR"))


@pytest.mark.parametrize("list_id", ["../config.json", "a/b", ".."])
def test_paths_outside_of_status_dir(backend, list_id):
    backend.create_status_repo()
    with pytest.raises(NotFound):
        backend.read_status_data(list_id)


@pytest.mark.parametrize(
    "content",
    [
        "not json",
        json.dumps({"credentialsIssued": -1, "latestList": "V27UAUYPNR"}),
        json.dumps({"credentialsIssued": 1}),
    ],
)
def test_malformed_config(backend, content):
    backend.create_status_repo()
    (backend.status_dir / "config.json").write_text(content)
    with pytest.raises(DataCorruption):
        backend.read_config_data()


def test_malformed_status_credential(backend):
    backend.create_status_repo()
    (backend.status_dir / "V27UAUYPNR").write_text(json.dumps({"id": "V27UAUYPNR", "credentialSubject": {}}))
    with pytest.raises(DataCorruption):
        backend.read_status_data("V27UAUYPNR")


def test_write_leaves_no_temporary_files(backend):
    backend.create_status_repo()
    backend.create_config_data(StatusListConfig(credentialsIssued=0, latestList="V27UAUYPNR"))
    for i in range(1, 5):
        backend.update_config_data(StatusListConfig(credentialsIssued=i, latestList="V27UAUYPNR"))
    assert [p.name for p in backend.status_dir.iterdir()] == ["config.json"]
