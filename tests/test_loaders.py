import json
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from uuid import UUID

import pytest

from aibot.core.loaders import (
    json_default,
    loaders_registered,
    register_encoder,
    register_loaders,
    reset_loaders,
)


class Color(Enum):
    RED = "red"


@pytest.fixture(autouse=True)
def fresh_loaders():
    reset_loaders()
    yield
    reset_loaders()


def test_registration_happens_once():
    assert loaders_registered() is False
    assert register_loaders() is True
    assert register_loaders() is False
    assert loaders_registered() is True


def test_default_encoders():
    register_loaders()
    when = datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc)
    uid = UUID("12345678-1234-5678-1234-567812345678")

    payload = json.loads(json.dumps(
        {"when": when, "color": Color.RED, "id": uid, "amount": Decimal("1.50"), "tags": {"b", "a"}},
        default=json_default,
    ))

    assert payload == {
        "when": "2024-05-01T12:30:00+00:00",
        "color": "red",
        "id": str(uid),
        "amount": "1.50",
        "tags": ["a", "b"],
    }


def test_exceptions_are_encoded_with_their_type():
    register_loaders()
    assert json_default(RuntimeError("boom")) == "RuntimeError: boom"


def test_unknown_values_fall_back_to_repr():
    class Opaque:
        def __repr__(self):
            return "<opaque>"

    assert json_default(Opaque()) == "<opaque>"


def test_custom_encoder_wins_over_default():
    register_loaders()
    register_encoder(Color, lambda v: v.name.lower() + "!")
    assert json_default(Color.RED) == "red!"
