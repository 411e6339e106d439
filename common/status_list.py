# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Functions for Status List 2021
https://www.w3.org/TR/2023/WD-vc-status-list-20230427/
"""
import binascii
import gzip
import base64
import zlib
from typing import Literal

import bitarray
from pydantic import BaseModel

from common.parsing import add_padding, remove_padding

MINIMUM_LIST_LENGTH = 131072
"""16KB, the minimum bitstring length for group privacy"""

STATUS_LIST_CONTEXT_V1 = "https://w3id.org/vc/status-list/2021/v1"


class StatusListDecodingError(ValueError):
    """The encoded list is not a gzip compressed, base64url encoded bitstring"""


def _from_bitarray_to_str(bit_data: bitarray.bitarray) -> str:
    """
    Converts a bitarray to StatusList2021 compatible b64 string
    """
    zipped = gzip.compress(bit_data.tobytes())
    encoded = base64.urlsafe_b64encode(zipped)
    return remove_padding(encoded.decode())


def _from_str_to_bitarray(encoded_data: str) -> bitarray.bitarray:
    """
    Converts the base64 encoded string to a bitarray
    """
    try:
        zipped = base64.urlsafe_b64decode(add_padding(encoded_data))
        unzipped = gzip.decompress(zipped)
    except (binascii.Error, gzip.BadGzipFile, zlib.error, EOFError, ValueError) as e:
        raise StatusListDecodingError(f"Malformed encoded status list: {e}") from e
    a = bitarray.bitarray()
    a.frombytes(unzipped)
    return a


def list_length_for_capacity(capacity: int) -> int:
    """
    Number of bits needed to address the indices 1..capacity,
    never shorter than the privacy minimum
    """
    return max(capacity + 1, MINIMUM_LIST_LENGTH)


def from_string(base64_encoded: str) -> "StatusList2021":
    """
    Decodes an encoded list with all of its bits, a list keeps the length it was created with
    """
    return StatusList2021(_from_str_to_bitarray(base64_encoded))


def create_empty(size: int) -> "StatusList2021":
    a = bitarray.bitarray(size)
    a.setall(0)
    return StatusList2021(a)


def create_full(size: int) -> "StatusList2021":
    a = bitarray.bitarray(size)
    a.setall(1)
    return StatusList2021(a)


class StatusList2021:
    def __init__(self, data: bitarray.bitarray):
        self.data = data

    def __str__(self) -> str:
        return self.pack()

    def __len__(self) -> int:
        return len(self.data)

    def set_bit(self, index: int, bit_value: bool = True):
        """
        Sets the bit at the index to the given bit_value (True = 1, False = 0)
        """
        self.data[index] = int(bit_value)

    def get_bit(self, index: int) -> bool:
        return bool(self.data[index])

    def pack(self) -> str:
        """
        Create the zipped & url-safe base64 encoded
        """
        return _from_bitarray_to_str(self.data)


class CredentialStatus(BaseModel):
    id: str
    """
    The value of the id property MUST be a URL which MAY be dereferenced.
    """
    type: str
    """
    Must express the credential status type, eg StatusList2021Entry
    """


class StatusList2021Entry(CredentialStatus):
    """
    https://www.w3.org/TR/2023/WD-vc-status-list-20230427/#statuslist2021entry
    id is expected to be a URL that identifies the status information associated with the verifiable credential.
    id must not be the url for the status list.
    """

    type: Literal['StatusList2021Entry'] = 'StatusList2021Entry'
    statusPurpose: str
    statusListIndex: int
    """
    identifies the bit position of the status of the verifiable credential
    """
    statusListCredential: str
    """
    MUST be a URL to a verifiable credential
    resulting verifiable credential MUST have type property that includes the StatusList2021Credential value
    """
