"""Serialisation and display masking of leased credential payloads."""

import json
from typing import Any

from ..errors import InvalidArgument

MULTIVALUE_GROUP = "authentication_multivalue"


def encode(payload: dict[str, Any]) -> str:
    """Serialise a credential payload to its canonical string form."""
    return json.dumps(payload, sort_keys=True)


def decode(value: str) -> dict[str, Any]:
    """Parse a string produced by :func:`encode`."""
    try:
        payload = json.loads(value)
    except (TypeError, ValueError) as e:
        raise InvalidArgument(f"Value is not a JSON document: {e}") from e
    if not isinstance(payload, dict):
        raise InvalidArgument("Value is not a JSON object")
    return payload


def obscure(
    value: str,
    key_type_group: str | None = None,
    *,
    visible_right: int = 4,
    visible_left: int = 0,
    replacement_character: str = "*",
    fixed_length: int = 0,
) -> str:
    """Mask a secret for display.

    Keeps ``visible_left`` leading and ``visible_right`` trailing characters
    and replaces the rest. ``fixed_length`` pins the length of the masked
    part only, so the output does not leak the value's length. This is not
    the Drupal key module's ``fixed_length``, which sets the total output
    length including the visible characters. A value too short to hide
    anything is masked completely.

    Multi-field payloads (``key_type_group="authentication_multivalue"``)
    are decoded, each field is masked on its own with four visible
    characters, and the result is re-encoded in the same shape.
    """
    if key_type_group == MULTIVALUE_GROUP:
        fields = decode(value)
        return encode(
            {
                name: obscure(
                    str(field),
                    visible_left=visible_left,
                    replacement_character=replacement_character,
                    fixed_length=fixed_length,
                )
                for name, field in fields.items()
            }
        )

    if visible_left < 0 or visible_right < 0:
        raise InvalidArgument("Visible character counts must not be negative")

    visible = visible_left + visible_right
    if len(value) <= visible:
        masked_length = fixed_length or len(value)
        return replacement_character * masked_length

    left = value[:visible_left]
    right = value[len(value) - visible_right:]
    masked_length = fixed_length or len(value) - visible
    return left + replacement_character * masked_length + right
