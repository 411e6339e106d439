# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Schemas of the artifacts kept in the status repository and of the request bodies.
Artifacts can be edited out of band, so they are validated on every read.
"""

import datetime
from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

CREDENTIALS_CONTEXT_V1 = "https://www.w3.org/2018/credentials/v1"
STATUS_PURPOSE_REVOCATION = "revocation"


def utc_timestamp() -> str:
    """ISO-8601 timestamp in UTC with millisecond precision, e.g. 2024-02-07T14:38:19.565Z"""
    now = datetime.datetime.now(datetime.timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class CredentialAction(Enum):
    """Actions applied to credentials and tracked in the status log"""

    issued = "issued"
    revoked = "revoked"


class StatusListConfig(BaseModel):
    """
    Content of config.json
    * credentialsIssued: Number of indices allocated on the latest list
    * latestList: Id of the list new credentials are allocated on
    """

    credentialsIssued: int = Field(ge=0)
    latestList: str = Field(min_length=1)


class LogEntry(BaseModel):
    """One entry of the append only log.json"""

    timestamp: str = Field(default_factory=utc_timestamp)
    credentialId: Optional[str] = None
    credentialSubject: Optional[str] = None
    action: CredentialAction
    issuerDid: str
    verificationMethod: str
    statusListId: Optional[str] = None
    statusListCredential: str
    statusListIndex: int = Field(ge=1)

    @property
    def list_id(self) -> str:
        """Id of the status list, taken from the status list credential url if not stored"""
        return self.statusListId or self.statusListCredential.rstrip("/").split("/")[-1]

    def to_json(self) -> dict:
        return self.model_dump(mode="json", exclude_none=True)


class StatusListSubject(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    type: Literal["StatusList2021"] = "StatusList2021"
    statusPurpose: str = STATUS_PURPOSE_REVOCATION
    encodedList: str


class StatusListCredential(BaseModel):
    """
    StatusList2021Credential
    https://www.w3.org/TR/2023/WD-vc-status-list-20230427/#statuslist2021credential
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    context: list[str] = Field(alias="@context")
    id: str
    type: list[str]
    issuer: str | dict
    issuanceDate: str
    credentialSubject: StatusListSubject
    proof: Optional[dict] = None

    def to_json(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class SigningOptions(BaseModel):
    """Options passed to the signer"""

    model_config = ConfigDict(extra="allow")

    verificationMethod: Optional[str] = None
    proofPurpose: str = "assertionMethod"
    created: Optional[str] = None
    domain: Optional[str] = None
    challenge: Optional[str] = None


class IssueCredentialRequest(BaseModel):
    """Unsigned credential to attach a status to and sign"""

    credential: dict[str, Any]
    options: Optional[SigningOptions] = None


class CredentialStatusUpdate(BaseModel):
    type: str = "StatusList2021Credential"
    status: str
    """Requested status, only "revoked" is supported"""


class CredentialStatusRequest(BaseModel):
    """Status change for a credential issued by this service, identified by its id"""

    credentialId: str
    credentialStatus: list[CredentialStatusUpdate] = Field(min_length=1)


class VerifyCredentialRequest(BaseModel):
    verifiableCredential: dict[str, Any]


class ReconciliationReport(BaseModel):
    """Outcome of comparing config, log and status list after a restart"""

    latestList: str
    credentialsIssued: int
    highestLoggedIndex: int = 0
    createdMissingList: bool = False
    repairedCounter: bool = False
    unloggedIndices: int = 0
