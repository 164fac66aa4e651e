"""
Base Configuration Model.
"""

from pydantic import BaseModel, ConfigDict


class BaseConfig(BaseModel):
    """
    Base configuration model.

    Immutable and ignores unknown keys. ``${VAR}`` references are expanded
    once, by ConfigLoader, before models are validated.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        validate_default=True,
        str_strip_whitespace=True,
    )
