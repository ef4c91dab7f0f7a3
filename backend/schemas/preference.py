"""Pydantic schemas for preference records."""

from pydantic import BaseModel, Field, ValidationError

from services.exceptions import InvalidInputError


class PreferenceInput(BaseModel):
    """Format constraints a preference must satisfy before it is persisted."""

    user_id: str = Field(min_length=1, max_length=26)
    category: str = Field(min_length=1, max_length=32)
    name: str = Field(min_length=1, max_length=32)
    value: str = Field(default="", max_length=2000)

    model_config = {"from_attributes": True}


def validate_preference(preference) -> PreferenceInput:
    """Validate a Preference (or any object with the same attributes).

    Raises:
        InvalidInputError: naming the first offending field.
    """
    try:
        return PreferenceInput.model_validate(preference)
    except ValidationError as exc:
        error = exc.errors()[0]
        field = str(error["loc"][0]) if error["loc"] else "preference"
        raise InvalidInputError(
            field,
            getattr(preference, field, None),
            reason=error["msg"],
            operation="validate",
        ) from exc
