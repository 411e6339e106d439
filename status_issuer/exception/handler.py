# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

import logging

from fastapi import Request, FastAPI
from fastapi.responses import JSONResponse

from common.model.exception import ServiceError

from .status_errors import CredentialStatusError

_logger = logging.getLogger(__name__)


def configure_exception_handlers(app: FastAPI) -> None:
    """
    Configure exception handlers on the FastAPI app instance rendering
    credential status errors as `ServiceError`.

    Args:
        app (FastAPI): the instance to configure the handlers for.
    """

    @app.exception_handler(CredentialStatusError)
    async def credential_status_exception_handler(request: Request, exc: CredentialStatusError):
        content = ServiceError(
            error=exc.error,
            error_description=exc.error_description,
            partial=exc.partial,
            credentialStatus=exc.credential_status,
        )
        if exc.status_code >= 500:
            _logger.error(f"Credential status operation failed {exc.status_code=} {content}")
        else:
            _logger.info(f"Credential status request rejected {exc.status_code=} {content}")
        return JSONResponse(
            status_code=exc.status_code,
            headers={"Cache-Control": "no-store"},
            content=content.model_dump(exclude_none=True),
        )
