# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Issuance of credentials with a StatusList2021 credential status and their revocation
"""

import fastapi
from fastapi import status

from common.apikey import require_api_key
import common.model.exception as ex

from status_issuer import engine
from status_issuer import status_client as sc
from status_issuer.models import CredentialStatusRequest, IssueCredentialRequest

TAG = "Credential Status"

ERROR_RESPONSES = {
    status.HTTP_404_NOT_FOUND: {"model": ex.ServiceError},
    status.HTTP_409_CONFLICT: {"model": ex.ServiceError},
    status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": ex.ServiceError},
}

router = fastapi.APIRouter(
    prefix="/credentials",
    dependencies=[fastapi.Security(require_api_key)],
    tags=[TAG],
    responses=ERROR_RESPONSES,
)

public_router = fastapi.APIRouter(prefix="/credentials", tags=[TAG], responses=ERROR_RESPONSES)


@router.post("/issue", status_code=status.HTTP_201_CREATED)
def issue_credential(request: IssueCredentialRequest, status_engine: engine.inject) -> dict:
    """
    Attaches the next free index of the latest status list to the credential and signs it.
    A new status list is started once the latest list is full.
    """
    return status_engine.issue_credential(request.credential, request.options)


@router.post("/status", responses={status.HTTP_400_BAD_REQUEST: {"model": ex.ServiceError}})
def update_credential_status(request: CredentialStatusRequest, status_engine: engine.inject) -> dict:
    """
    Revokes a credential issued by this service, identified by its credential id.
    Returns the updated status list credential.
    """
    return status_engine.update_credential_status(request)


@router.patch("/status/{list_id}/{status_list_index}")
def revoke_status_list_index(list_id: str, status_list_index: int, status_engine: engine.inject) -> dict:
    """Revokes the index of the status list, returns the updated status list credential"""
    return status_engine.revoke_credential(list_id, status_list_index)


@public_router.get("/status/{list_id}")
def get_status_list_credential(list_id: str, status_client: sc.inject) -> dict:
    """Signed StatusList2021Credential as published to verifiers"""
    return status_client.get_status_credential(list_id)
