# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Credential Status Issuer
Issues credentials with a revocable status and publishes the status lists
through GitHub Pages, GitLab Pages or this service.

W3C Verifiable Credential
https://www.w3.org/TR/vc-data-model/

StatusList2021
https://www.w3.org/TR/2023/WD-vc-status-list-20230427/
"""

from asgi_correlation_id import CorrelationIdMiddleware

from common.fastapi_extensions import ExtendedFastAPI

from status_issuer.exception.handler import configure_exception_handlers
import status_issuer.route.credential as credential
import status_issuer.route.health as health
import status_issuer.route.verify as verify
import status_issuer.provisioning as provisioning
import status_issuer.config as conf

app = ExtendedFastAPI(
    conf.StatusIssuerConfig,
    lifespan_functions=[provisioning.status_repo_lifespan()],
)

app.include_router(credential.router)
app.include_router(credential.public_router)
app.include_router(verify.router)
app.include_router(health.router)

configure_exception_handlers(app)

app.add_middleware(
    CorrelationIdMiddleware,
)
