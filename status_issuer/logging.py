# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

from enum import Enum

from common.logging import operations


class StatusOperationsLogEntry(operations.OperationsLogEntry):
    """Container for credential status operations specific logging."""

    class Operation(Enum):
        issuance = "ISSUANCE"
        revocation = "REVOCATION"
        provisioning = "PROVISIONING"

    class Step(Enum):
        allocation = "ALLOCATION"
        rotation = "ROTATION"
        signing = "SIGNING"
        persisting = "PERSISTING"
        logging = "LOGGING"
        reconciliation = "RECONCILIATION"

    operation: Operation
    step: Step

    credential_id: str | None = None
