"""
Base models shared by every Cortex model.
"""

from pydantic import BaseModel, ConfigDict


class CortexBaseModel(BaseModel):
    """
    Base model for Cortex.
    Common configuration and validation.
    """

    model_config = ConfigDict(
        # Validate values on assignment
        validate_assignment=True,
        # Use enum values
        use_enum_values=True,
        # Prevent extra fields
        extra="forbid",
        json_schema_extra={"additionalProperties": False},
    )
