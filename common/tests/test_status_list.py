# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

import base64
import gzip
import random

import pytest

from common import status_list as sl


def test_list_length_for_capacity():
    assert sl.list_length_for_capacity(10) == sl.MINIMUM_LIST_LENGTH
    assert sl.list_length_for_capacity(100000) == sl.MINIMUM_LIST_LENGTH
    assert sl.list_length_for_capacity(200000) == 200001


def test_empty_list():
    status_list = sl.create_empty(sl.MINIMUM_LIST_LENGTH)
    assert len(status_list) == sl.MINIMUM_LIST_LENGTH
    assert not any(status_list.get_bit(i) for i in range(len(status_list)))
    encoded = status_list.pack()
    assert "=" not in encoded, "Encoded list must not be padded"
    # url safe alphabet
    assert "+" not in encoded and "/" not in encoded


def test_full_list():
    status_list = sl.create_full(16)
    assert all(status_list.get_bit(i) for i in range(16))


def test_decode_restores_bits():
    length = 100000
    rng = random.Random(1234)
    indices = {rng.randrange(1, length) for _ in range(200)}
    status_list = sl.create_empty(length)
    for index in indices:
        status_list.set_bit(index)

    decoded = sl.from_string(status_list.pack())
    assert len(decoded) == length
    assert decoded.data == status_list.data
    assert {i for i in range(length) if decoded.get_bit(i)} == indices


def test_set_bit_only_changes_index():
    status_list = sl.create_empty(sl.MINIMUM_LIST_LENGTH)
    status_list.set_bit(1)
    decoded = sl.from_string(str(status_list))
    assert decoded.get_bit(1)
    assert not decoded.get_bit(0)
    assert not decoded.get_bit(2)
    assert decoded.data.count(1) == 1

    decoded.set_bit(1, False)
    assert decoded.data.count(1) == 0


def test_encoding_is_gzip_base64url():
    status_list = sl.create_empty(64)
    status_list.set_bit(0)
    raw = gzip.decompress(base64.urlsafe_b64decode(sl.add_padding(status_list.pack())))
    assert raw == b"\x80" + b"\x00" * 7


@pytest.mark.parametrize("encoded", ["not a list!", "H4sIAAAAAAAA", base64.urlsafe_b64encode(b"plain").decode()])
def test_malformed_list(encoded):
    with pytest.raises(sl.StatusListDecodingError):
        sl.from_string(encoded)


def test_decode_keeps_list_length():
    # the bitstring is stored as bytes, lengths round up to full bytes
    assert len(sl.from_string(sl.create_empty(100000).pack())) == 100000
    assert len(sl.from_string(sl.create_empty(200001).pack())) == 200008

    status_list = sl.create_empty(200001)
    status_list.set_bit(150000)
    decoded = sl.from_string(status_list.pack())
    decoded.set_bit(5)
    reencoded = sl.from_string(decoded.pack())
    assert [i for i in range(len(reencoded)) if reencoded.get_bit(i)] == [5, 150000]


def test_status_list_entry():
    entry = sl.StatusList2021Entry(
        id="https://example.org/credentials/status/V27UAUYPNR#1",
        statusPurpose="revocation",
        statusListIndex=1,
        statusListCredential="https://example.org/credentials/status/V27UAUYPNR",
    )
    assert entry.model_dump() == {
        "id": "https://example.org/credentials/status/V27UAUYPNR#1",
        "type": "StatusList2021Entry",
        "statusPurpose": "revocation",
        "statusListIndex": 1,
        "statusListCredential": "https://example.org/credentials/status/V27UAUYPNR",
    }
