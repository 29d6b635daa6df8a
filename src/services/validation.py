"""Declarative validation of request bodies, query strings and path params."""

import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

from email_validator import EmailNotValidError, validate_email
from pydantic import BaseModel, ValidationError

from src.schemas.user import (
    MOBILE_RE,
    USERNAME_RE,
    ListUsersRequest,
    LoginRequest,
    RegisterRequest,
    UpdateUserRequest,
    UserIdRequest,
)
from src.services.result import Err, ErrorKind, FieldError, Ok, Result

Check = Callable[[dict[str, Any]], list[FieldError]]
Rule = tuple[Callable[[str], Any], str]


def is_email(value: str) -> bool:
    try:
        validate_email(value, check_deliverability=False)
    except EmailNotValidError:
        return False
    return True


PASSWORD_RULES: Sequence[Rule] = (
    (re.compile(r"[A-Z]").search, "Password must contain at least one uppercase letter"),
    (re.compile(r"[a-z]").search, "Password must contain at least one lowercase letter"),
    (re.compile(r"[0-9]").search, "Password must contain at least one number"),
    (re.compile(r"[^A-Za-z0-9]").search, "Password must contain at least one special character"),
)
USERNAME_RULES: Sequence[Rule] = (
    (USERNAME_RE.fullmatch, "Username can only contain letters, numbers, and underscores"),
)
MOBILE_RULES: Sequence[Rule] = ((MOBILE_RE.fullmatch, "Invalid mobile number format"),)
EMAIL_RULES: Sequence[Rule] = ((is_email, "Invalid email format"),)


def text_rules(section: str, name: str, rules: Sequence[Rule], strip: bool = True) -> Check:
    """Build a check reporting every rule a text field breaks.

    Runs on the raw request data, so it reports even when the field also
    fails its length constraint. Absent and non-text values are left to the
    model.
    """

    def check(data: dict[str, Any]) -> list[FieldError]:
        part = data.get(section)
        if not isinstance(part, dict):
            return []
        value = part.get(name)
        if not isinstance(value, str):
            return []
        if strip:
            value = value.strip()
        return [
            FieldError(field=f"{section}.{name}", message=message)
            for accepts, message in rules
            if not accepts(value)
        ]

    return check


check_password_strength = text_rules("body", "password", PASSWORD_RULES, strip=False)

USER_BODY_CHECKS = (
    text_rules("body", "username", USERNAME_RULES),
    text_rules("body", "mobile", MOBILE_RULES),
    text_rules("body", "email", EMAIL_RULES),
)


@dataclass(frozen=True)
class RequestSchema:
    """A request model plus extra checks that can each add field errors."""

    model: type[BaseModel]
    checks: tuple[Check, ...] = ()


SCHEMAS = MappingProxyType(
    {
        "register": RequestSchema(
            RegisterRequest, checks=(*USER_BODY_CHECKS, check_password_strength)
        ),
        "login": RequestSchema(LoginRequest),
        "get_user_by_id": RequestSchema(UserIdRequest),
        "update_user": RequestSchema(UpdateUserRequest, checks=USER_BODY_CHECKS),
        "delete_user": RequestSchema(UserIdRequest),
        "list_users": RequestSchema(ListUsersRequest),
    }
)


def field_errors(items: list[dict[str, Any]]) -> list[FieldError]:
    """Flatten pydantic error dicts into ``{field, message}`` pairs."""
    errors = []
    for item in items:
        message = item["msg"]
        if item["type"] == "value_error":
            # Drop pydantic's "Value error, " prefix
            message = str(item.get("ctx", {}).get("error", message))
        errors.append(
            FieldError(field=".".join(str(part) for part in item["loc"]), message=message)
        )
    return errors


def validate_request(
    schema_id: str,
    *,
    body: Any = None,
    query: dict[str, Any] | None = None,
    params: dict[str, Any] | None = None,
) -> Result[BaseModel]:
    """Validate the parts of a request against a registered schema.

    Returns the normalized request model on success, or every violated
    constraint on failure.
    """
    schema = SCHEMAS[schema_id]
    sections = {"body": body, "query": query or {}, "params": params or {}}
    data = {name: sections[name] for name in schema.model.model_fields}

    errors: list[FieldError] = []
    validated = None
    try:
        validated = schema.model.model_validate(data)
    except ValidationError as e:
        errors.extend(field_errors(e.errors()))

    for check in schema.checks:
        errors.extend(check(data))

    if errors:
        return Err(ErrorKind.VALIDATION_FAILED, "Validation failed", errors=errors)
    return Ok(validated)
