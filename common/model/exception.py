# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

from typing import Optional

from pydantic import BaseModel


class ServiceError(BaseModel):
    """
    Error rendered for failed status operations
    * error: Machine readable code identifieng the exception
    * error_description: Human readable error description for the error type.
    * partial: True if persisted state changed before the operation failed.
    * credentialStatus: The status entry allocated by an incomplete issuance.
    """

    error: str
    error_description: str
    partial: bool = False
    credentialStatus: Optional[dict] = None
