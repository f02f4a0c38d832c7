from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

import pytest

from dynadash_py import Marshaller, ValidationError


@dataclass(frozen=True)
class Address:
    city: str
    zip_code: str | None = None


class Profile:
    def __init__(self) -> None:
        self.name = "ada"
        self.score = 1.5
        self._secret = "hidden"


def test_marshall_tags_string_and_number_fields() -> None:
    item = Marshaller().marshall({"id": "yo", "context": "asdf", "expiresAt": 1234567890})
    assert item == {
        "id": {"S": "yo"},
        "context": {"S": "asdf"},
        "expiresAt": {"N": "1234567890"},
    }


def test_marshall_converts_floats_and_drops_none() -> None:
    item = Marshaller().marshall({"price": 9.99, "gone": None, "nested": {"keep": 1, "drop": None}})
    assert item == {
        "price": {"N": "9.99"},
        "nested": {"M": {"keep": {"N": "1"}}},
    }


def test_marshall_keeps_none_when_configured() -> None:
    item = Marshaller(remove_none_values=False).marshall({"gone": None})
    assert item == {"gone": {"NULL": True}}


def test_marshall_converts_class_instances() -> None:
    marshaller = Marshaller()
    item = marshaller.marshall({"address": Address(city="Oslo"), "profile": Profile()})
    assert item == {
        "address": {"M": {"city": {"S": "Oslo"}}},
        "profile": {"M": {"name": {"S": "ada"}, "score": {"N": "1.5"}}},
    }

    assert marshaller.marshall(Address(city="Rome", zip_code="00100")) == {
        "city": {"S": "Rome"},
        "zip_code": {"S": "00100"},
    }


def test_marshall_rejects_class_instances_when_disabled() -> None:
    with pytest.raises(ValidationError):
        Marshaller(convert_class_instances=False).marshall({"address": Address(city="Oslo")})


def test_marshall_rejects_non_mapping_records() -> None:
    with pytest.raises(ValidationError, match="record must be a mapping"):
        Marshaller().marshall(["a"])


def test_unmarshall_and_native_numbers() -> None:
    item = {
        "n": {"N": "3"},
        "f": {"N": "2.5"},
        "l": {"L": [{"N": "1"}, {"S": "x"}]},
        "m": {"M": {"inner": {"N": "7"}}},
    }
    plain = Marshaller().unmarshall(item)
    assert plain["n"] == Decimal("3")
    assert isinstance(plain["n"], Decimal)

    native = Marshaller(native_numbers=True).unmarshall(item)
    assert native == {"n": 3, "f": 2.5, "l": [1, "x"], "m": {"inner": 7}}
    assert isinstance(native["n"], int)


def test_project_applies_transform() -> None:
    marshaller = Marshaller(native_numbers=True)
    item = {"id": {"S": "a"}, "count": {"N": "2"}}
    assert marshaller.project(item) == {"id": "a", "count": 2}
    assert marshaller.project(item, lambda row: row["count"] * 10) == 20
