# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

import contextlib
import logging
from typing import Callable

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from common import config as conf
from common.logging.setup import configure_logging, get_log_id
from common.model.exception import ServiceError
from common.version import get_version

_logger = logging.getLogger(__name__)


class ExtendedFastAPI(FastAPI):
    """
    FastAPI application of a status service.

    Compared to `FastAPI` it
     - takes title and version from the config and the installed distribution
     - hides the documentation endpoints unless enabled
     - configures logging before any other lifespan runs
     - enables CORS for the external url and additional origins
     - answers unhandled errors with a `ServiceError` carrying the request id
    """

    def __init__(
        self,
        config: Callable[[], conf.Config],
        lifespan_functions: list[contextlib.AbstractContextManager] | None = None,
        *args,
        **kwargs,
    ) -> None:
        self.config_instance = config()
        self.lifespan_functions = [self._logging_lifespan()]
        self.lifespan_functions.extend(lifespan_functions or [])

        kwargs.setdefault("title", self.config_instance.app_name)
        kwargs.setdefault("version", get_version())
        kwargs.setdefault("lifespan", ExtendedFastAPI.lifespan)
        if not self.config_instance.enable_documentation_endpoints:
            _logger.info("Documentation endpoints are disabled")
            kwargs.update(docs_url=None, redoc_url=None, openapi_url=None)

        super().__init__(*args, **kwargs)

        if self.config_instance.enable_cors:
            self._add_cors()
        self.add_exception_handler(Exception, self.unhandled_exception_handler)

    @contextlib.contextmanager
    def _logging_lifespan(self):
        configure_logging(self.config_instance)
        yield

    @staticmethod
    @contextlib.asynccontextmanager
    async def lifespan(app: "ExtendedFastAPI"):
        # Lifespans are left in reverse order, the logging lifespan last
        with contextlib.ExitStack() as stack:
            for lifespan_function in app.lifespan_functions:
                stack.enter_context(lifespan_function)
            yield

    def _allowed_origins(self) -> list[str]:
        origins = [self.config_instance.external_url or "*"]
        origins.extend(origin.strip() for origin in self.config_instance.additional_allowed_origins.split(",") if origin.strip())
        return origins

    def _add_cors(self) -> None:
        origins = self._allowed_origins()
        _logger.info(f"CORS enabled for {origins}")
        self.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    async def unhandled_exception_handler(self, request: Request, exc: Exception) -> JSONResponse:
        _logger.exception(f"Unhandled exception on {request.method} {request.url.path}")
        content = ServiceError(
            error="internal_error",
            error_description=f"Could not process the request. Please contact support with request id {get_log_id()}",
        )
        return JSONResponse(status_code=500, headers={"Cache-Control": "no-store"}, content=content.model_dump(exclude_none=True))
