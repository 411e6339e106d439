# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

import json

import pytest

from common import parsing


def test_object_parsing():
    test_object = {
        "str": "Hello World",
        "int": 5,
        "bool": True,
        "dict": {"inner": "data"},
    }
    b64 = parsing.object_to_url_safe(test_object)
    assert isinstance(b64, str)
    b64_short = parsing.remove_padding(b64)
    assert b64.startswith(b64_short)
    assert '=' not in b64_short, "Remove padding should remove ="
    decoded = parsing.object_from_url_safe(b64)
    decoded_short = parsing.object_from_url_safe(b64_short)
    assert test_object == decoded_short
    assert test_object == decoded
    # Test some superfluous padding
    b64_overpadded = parsing.add_padding(b64)
    decoded_overpadded = parsing.object_from_url_safe(b64_overpadded)
    assert test_object == decoded_overpadded, "Unnecessary padding should not matter to the parser"


def test_object_to_json():
    data = {"credentialsIssued": 0, "latestList": "V27UAUYPNR"}
    serialized = parsing.object_to_json(data)
    assert serialized == '{\n  "credentialsIssued": 0,\n  "latestList": "V27UAUYPNR"\n}'
    assert json.loads(serialized) == data


@pytest.mark.parametrize(
    "value,expected",
    [
        ("true", True),
        ("Yes", True),
        ("1", True),
        ("false", False),
        ("", False),
        (True, True),
        (0, False),
    ],
)
def test_interpret_as_bool(value, expected):
    assert parsing.interpret_as_bool(value) is expected


def test_interpret_as_bool_unsupported():
    with pytest.raises(Exception):
        parsing.interpret_as_bool(None)
