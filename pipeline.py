"""
Request assembler.

Runs the field validator registry over an incoming payload and decides the
whole request with one outcome:
- An empty payload is a client error, never a no-op success
- Unknown fields reject the request before any rule runs
- Only the fields present in the payload are validated (partial updates)
- Fields are visited in their declared order and the first failing rule
  ends validation; later fields never reach the database
- On success the accepted values are transformed (hashed, normalized,
  parsed) into the projection handed to `mutations.py`
"""

from typing import Any, Dict, List, Optional, Union

from outcomes import ClientInputError, Failure, ValidationFailure
from validation import FieldSpec, Rule, unchanged_message

EMPTY_BODY = "Request body is empty."
UNKNOWN_FIELDS = "Request body contains unknown fields."


def run_rules(rules: List[Rule], value: Any, current: Optional[dict] = None) -> Optional[Failure]:
    """Run a rule chain and return its first failure, if any."""
    for rule in rules:
        failure = rule(value, current)
        if failure is not None:
            return failure
    return None


def validate_payload(
    payload: Optional[Dict[str, Any]],
    fields: List[FieldSpec],
    current: Optional[dict] = None,
    partial: bool = True,
) -> Union[Failure, Dict[str, Any]]:
    """
    Validate `payload` against `fields`.

    Args:
        payload: Parsed request body
        fields: Recognized fields in priority order
        current: Persisted document the update applies to, threaded into
            every rule; None on creation
        partial: True for partial updates; False enforces required fields

    Returns:
        The first Failure met, or the transformed projection of the
        present fields.
    """
    if not payload:
        return ClientInputError(EMPTY_BODY)

    recognized = {spec.name for spec in fields}
    if any(name not in recognized for name in payload):
        return ValidationFailure(UNKNOWN_FIELDS)

    if not partial:
        for spec in fields:
            if spec.required and payload.get(spec.name) is None:
                return ValidationFailure(f"{spec.name} is required.")

    for spec in fields:
        if spec.name not in payload:
            continue
        value = payload[spec.name]
        if value is None:
            if not spec.nullable:
                return ValidationFailure(f"{spec.name} cannot be empty.")
            if current is not None and current.get(spec.name) is None:
                return ValidationFailure(unchanged_message(spec.name))
            continue
        failure = run_rules(spec.rules, value, current)
        if failure is not None:
            return failure

    projection = {}
    for spec in fields:
        if spec.name not in payload:
            continue
        value = payload[spec.name]
        if value is not None and spec.transform is not None:
            value = spec.transform(value)
        projection[spec.name] = value
    return projection
