# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Verification of credentials issued by this service
"""

import fastapi
from fastapi import status

from common.apikey import require_api_key
import common.model.exception as ex

from status_issuer import engine
from status_issuer.models import VerifyCredentialRequest

router = fastapi.APIRouter(
    prefix="/verify",
    dependencies=[fastapi.Security(require_api_key)],
    tags=["Verification"],
    responses={status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": ex.ServiceError}},
)


@router.post("/credentials")
def verify_credential(request: VerifyCredentialRequest, status_engine: engine.inject) -> dict:
    """
    Checks the proof against the signing key of this service and the revocation bit of the credential status.
    Returns {"verified": bool, "results": [...], "statusResult": {...}}, statusResult only for credentials with a status.
    """
    return status_engine.verify_credential(request.verifiableCredential)
