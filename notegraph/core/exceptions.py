__all__ = [
    "ReadOnlyError",
    "ValidationError",
    "NotFoundError",
    "EntityDeletedError",
    "ProtectedSessionError",
]


class ReadOnlyError(Exception):
    """
    Raised when user attempts to write a field which is read-only.
    """

    def __init__(self, field, entity):
        super().__init__(f"Attempt to set read-only field {field} of {entity}")


class ValidationError(Exception):
    """
    Raised at the point of mutation when an entity would be persisted in an
    invalid state.

    Examples:

    - {obj}`Attribute` with a type other than `label` or `relation`
    - {obj}`Relation` targeting a note which doesn't exist
    - {obj}`Branch` which would create a cycle in the tree
    """

    errors: list[str]

    def __init__(self, errors: str | list[str]):
        self.errors = [errors] if isinstance(errors, str) else errors
        errors_str = "\n".join(self.errors)
        super().__init__(f"Errors found during validation: {errors_str}")


class NotFoundError(Exception):
    """
    Raised when an entity id is requested which isn't in the cache.
    """

    entity_name: str
    entity_id: str

    def __init__(self, entity_name: str, entity_id: str, msg: str | None = None):
        self.entity_name = entity_name
        self.entity_id = entity_id
        super().__init__(msg or f"{entity_name} '{entity_id}' not found")


class EntityDeletedError(NotFoundError):
    """
    Raised when an entity id is requested which exists, but was soft-deleted.
    """

    def __init__(self, entity_name: str, entity_id: str):
        super().__init__(
            entity_name,
            entity_id,
            msg=f"{entity_name} '{entity_id}' was deleted",
        )


class ProtectedSessionError(Exception):
    """
    Raised when protected data is written while no protected session is
    available.
    """


def _assert_validate(cond: bool, *errors: str):
    """
    Helper to raise a validation error if the condition is False.
    """
    if cond is not True:
        raise ValidationError(list(errors))
