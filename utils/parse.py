"""Strict JSON-to-model parser.

Used to turn a signal's free-form params_json into a validated Pydantic
model. Unlike a lenient parser, nothing is guessed: the text must be a JSON
object and every key must belong to the schema. An empty string means "no
parameters" and yields the schema's defaults.
"""

import json

from pydantic import BaseModel, ValidationError


class ParamsParseError(Exception):
    """Raised when params text cannot be parsed into the expected schema.

    Includes the raw text so callers can log it for debugging without
    having to catch and re-wrap the original exception themselves.
    """

    def __init__(self, message: str, raw: str):
        super().__init__(message)
        self.raw = raw


def parse_json_model(text: str, schema: type[BaseModel]) -> BaseModel:
    """Parse a JSON object string into a validated Pydantic model.

    Args:
        text: Raw JSON text. Blank text is treated as "{}".
        schema: Pydantic model class to validate against.

    Returns:
        A validated instance of schema.

    Raises:
        ParamsParseError: If the text is not a JSON object or does not match
            the schema. The .raw attribute contains the original text.
    """
    if not text or not text.strip():
        return schema()

    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ParamsParseError(f"Invalid JSON in paramsJson: {exc.msg}", raw=text) from exc

    if not isinstance(data, dict):
        raise ParamsParseError(
            f"paramsJson must be a JSON object, got {type(data).__name__}", raw=text
        )

    try:
        return schema.model_validate(data)
    except ValidationError as exc:
        raise ParamsParseError(
            f"paramsJson does not match {schema.__name__}: {_summarise(exc)}", raw=text
        ) from exc


# ── Private helpers ────────────────────────────────────────────────────────────

def _summarise(exc: ValidationError) -> str:
    """One line per field error: "merge_method: Input should be ...". """
    parts = []
    for error in exc.errors():
        loc = ".".join(str(p) for p in error["loc"]) or "<root>"
        parts.append(f"{loc}: {error['msg']}")
    return "; ".join(parts)
