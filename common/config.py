# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Environment configuration shared by all services, injected as FastAPI dependency
"""

import os
from typing import Annotated

from fastapi import Depends

from common.parsing import interpret_as_bool


def _env_flag(name: str, default: bool) -> bool:
    return interpret_as_bool(os.getenv(name, str(default)))


class Config:
    def __init__(self):
        self.enable_debug_mode = _env_flag("ENABLE_DEBUG_MODE", False)
        """Switches the defaults of the flags below to development friendly values"""

        # Service
        self.app_name = os.getenv("APP_NAME", "anonymous")
        """Used as openapi title and in every log line"""
        self.external_url = os.getenv("EXTERNAL_URL")
        """Public base url of this service, e.g. https://issuer.example.org"""
        self.api_key = os.getenv("API_KEY", "status_dev_key")
        """Expected value of the x-api-key header of protected endpoints"""
        self.enable_documentation_endpoints = _env_flag("ENABLE_DOCUMENTATION_ENDPOINTS", self.enable_debug_mode)
        self.enable_cors = _env_flag("ENABLE_CORS", self.enable_debug_mode)
        self.additional_allowed_origins = os.getenv("ADDITIONAL_ALLOWED_ORIGINS", "")
        """Comma separated origins allowed besides the external url when CORS is enabled"""

        # Outgoing requests
        self.enable_ssl_verification = _env_flag("ENABLE_SSL_VERIFICATION", not self.enable_debug_mode)

        # Logging
        self.log_level = os.getenv("LOG_LEVEL", "INFO")
        self.enable_splunk_log = _env_flag("ENABLE_SPLUNK_LOG", not self.enable_debug_mode)
        """Json log lines as expected by splunk instead of plain text"""


inject = Annotated[Config, Depends(Config)]
