"""Error taxonomy shared by the store, lifecycle and entity services.

Cloud transport errors live in :mod:`studiosync.cloud.client`; they are
converted into sync-queue entries and never reach callers. Conflicts are
recorded as data, not raised.
"""

from typing import Any, Optional, Union

from pydantic import BaseModel, ValidationError


class StudioError(Exception):
    """Base class for errors surfaced to callers."""


class InvalidInputError(StudioError):
    """Malformed input rejected before any write. Never retried."""

    def __init__(self, message: str, errors: Optional[list] = None) -> None:
        super().__init__(message)
        self.errors = errors or []


class AuthorizationError(StudioError):
    """The acting user lacks the rank or ownership required. Never queued."""


class NotFoundError(StudioError):
    """The target entity does not exist locally."""


class LocalStoreError(StudioError):
    """A statement failed on the privileged side of the local store bridge."""


def validate_input(model: type[BaseModel], data: Union[BaseModel, dict[str, Any]]) -> Any:
    """Validate caller input against ``model``, raising InvalidInputError on failure."""
    if isinstance(data, model):
        return data
    if isinstance(data, BaseModel):
        data = data.model_dump(exclude_unset=True)
    try:
        return model.model_validate(data)
    except ValidationError as e:
        messages = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'input'}: {err['msg']}" for err in e.errors()
        )
        raise InvalidInputError(f"Invalid {model.__name__}: {messages}", errors=e.errors()) from None
