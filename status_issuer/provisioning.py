# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
This module prepares the credential status repository when the service starts
"""

import contextlib
import logging

import status_issuer.config as conf
from status_issuer import engine
from status_issuer.backend.factory import get_backend

_logger = logging.getLogger(__name__)


@contextlib.contextmanager
def status_repo_lifespan() -> contextlib.AbstractContextManager:
    """
    Lifespan validating the configuration and setting up the status repository.
    An incomplete configuration stops the service before it accepts requests.
    """
    config = conf.get_config()
    report = engine.get_status_engine().setup()
    _logger.info(f"Credential status repository ready {config.cred_status_client_type=} {report}")
    yield
    get_backend().close()
