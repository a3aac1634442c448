"""
Shared schema helpers.

Contains the inclusive date range used to filter examinations and the
helper that turns loose request payloads into typed request structs.
"""

from datetime import date
from typing import Any, Mapping, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from ..exceptions import SchemaValidationException, format_validation_errors
from ..utils.datetime_utils import is_within_range

SchemaT = TypeVar("SchemaT", bound=BaseModel)


class DateRange(BaseModel):
    """Inclusive range of examination dates. Either bound may be open."""

    model_config = ConfigDict(frozen=True)

    start: Optional[date] = Field(None, description="First included date")
    end: Optional[date] = Field(None, description="Last included date")

    @model_validator(mode="after")
    def validate_bounds(self) -> "DateRange":
        """Validate that the range is not inverted."""
        if self.start is not None and self.end is not None and self.start > self.end:
            raise ValueError("Date range start must be on or before its end")
        return self

    def contains(self, value: date) -> bool:
        """Check whether a date lies in the range, both bounds inclusive."""
        return is_within_range(value, self.start, self.end)


def parse_request(schema: Type[SchemaT], payload: Mapping[str, Any]) -> SchemaT:
    """
    Validate a raw request payload against a schema.

    Args:
        schema: Pydantic model class describing the request
        payload: Raw mapping, e.g. a decoded JSON body

    Returns:
        Validated schema instance

    Raises:
        SchemaValidationException: If the payload does not match the schema
    """
    try:
        return schema.model_validate(payload)
    except ValidationError as e:
        raise SchemaValidationException(
            f"Invalid {schema.__name__} payload",
            schema_name=schema.__name__,
            validation_errors=format_validation_errors(e.errors()),
        )
