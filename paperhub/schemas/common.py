"""Common schemas and utilities."""

from pydantic import BaseModel, ConfigDict


class BaseSchema(BaseModel):
    """Base schema with common configuration."""

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
    )


class SnapshotSchema(BaseModel):
    """Base schema for values read from or written to a cache scope.

    Snapshots are frozen: an update builds a new value with model_copy()
    and stores it again.
    """

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
    )
