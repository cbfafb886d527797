"""
=============================================================================
USER MODEL
=============================================================================

The one entity this service manages.

    ┌──────────┬───────────────┬─────────────────────────────────────────┐
    │ Field    │ Type          │ Notes                                   │
    ├──────────┼───────────────┼─────────────────────────────────────────┤
    │ id       │ Optional[int] │ None until stored, then store-assigned  │
    │ name     │ str           │ required, non-empty                     │
    │ email    │ str           │ required, no format check               │
    └──────────┴───────────────┴─────────────────────────────────────────┘

Wire format:

    in:   {"name": "Ada", "email": "ada@example.org"}       (id ignored)
    out:  {"id": 1, "name": "Ada", "email": "ada@example.org"}

=============================================================================
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional
import json

from .errors import InvalidUserError


@dataclass
class User:
    """A user record."""

    name: str
    email: str
    id: Optional[int] = None

    @classmethod
    def from_json(cls, text: str) -> "User":
        """
        Parse a request body into an unsaved User.

        Any "id" in the body is ignored: ids come from the store on insert
        and from the path on update.

        Raises:
            InvalidUserError: If the body is not a JSON object with string
                              "name" and "email" fields, name is empty,
                              or a field holds characters the store
                              cannot keep (NUL, lone surrogates).
        """
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise InvalidUserError(f"Invalid JSON body: {e.msg}") from e
        except RecursionError as e:
            raise InvalidUserError("Invalid JSON body: nested too deeply") from e

        if not isinstance(data, dict):
            raise InvalidUserError("Body must be a JSON object")

        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "User":
        for field_name in ("name", "email"):
            if field_name not in data:
                raise InvalidUserError(f"Missing field: {field_name}")
            if not isinstance(data[field_name], str):
                raise InvalidUserError(f"Field must be a string: {field_name}")
            if not _is_storable(data[field_name]):
                raise InvalidUserError(f"Field contains invalid characters: {field_name}")

        if not data["name"].strip():
            raise InvalidUserError("Field must not be empty: name")

        return cls(name=data["name"], email=data["email"])

    @classmethod
    def from_row(cls, row) -> "User":
        """Build a User from an (id, name, email) row."""
        user_id, name, email = row
        return cls(id=user_id, name=name, email=email)

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "email": self.email}


def _is_storable(value: str) -> bool:
    """
    PostgreSQL text cannot hold NUL, and lone surrogates (legal in JSON
    escapes) have no UTF-8 encoding.
    """
    return "\x00" not in value and not any("\ud800" <= ch <= "\udfff" for ch in value)


def parse_user_id(raw: Optional[str]) -> int:
    """
    Turn the id segment of a path into an int.

    Raises:
        InvalidUserError: If the segment is missing or not a plain integer.
    """
    if raw is None or not (raw.isascii() and raw.isdigit()):
        raise InvalidUserError(f"Invalid user id: {raw!r}")
    return int(raw)
