"""
Structural operations on the note tree: creating, cloning and moving notes.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .entity.model import BranchRow, NoteRow
from .entity.types import AttributeType
from .events import ChildNoteEvent, EventType
from .exceptions import ProtectedSessionError, ValidationError, _assert_validate
from .utils import HIDDEN_NOTE_ID, NONE_NOTE_ID, ROOT_NOTE_ID, new_entity_id

if TYPE_CHECKING:
    from .branch.branch import Branch
    from .cache import GraphCache
    from .note.note import Note
    from .session import Session

__all__ = [
    "create_note",
    "clone_note_to_parent",
    "move_branch",
    "validate_parent_child",
    "would_create_cycle",
    "derive_mime",
]

FIXED_LOCATION_NOTE_IDS = [
    ROOT_NOTE_ID,
    HIDDEN_NOTE_ID,
    "_share",
    "_lbRoot",
    "_lbAvailableLaunchers",
    "_lbVisibleLaunchers",
]
"""
Notes which can't be moved, cloned or otherwise given a new parent.
"""

CHILD_ATTRIBUTE_PREFIX = "child:"


def derive_mime(note_type: str, mime: str | None = None) -> str:
    """
    Get mime to use for a new note of the given type, unless given.
    """
    if mime:
        return mime

    if note_type == "text":
        return "text/html"
    elif note_type in ("code", "mermaid"):
        return "text/plain"
    elif note_type in ("relationMap", "search", "canvas"):
        return "application/json"
    elif note_type in ("render", "book", "webView"):
        return ""
    return "application/octet-stream"


def get_new_note_position(parent_note: Note) -> int:
    """
    Position for a new child: above existing children if parent has
    `#newNotesOnTop`, otherwise below.
    """
    positions = [
        branch.note_position or 0
        for branch in parent_note.get_child_branches()
        if branch.note_id != HIDDEN_NOTE_ID
    ]

    if parent_note.is_label_truthy("newNotesOnTop"):
        return min(positions, default=0) - 10

    return max(positions, default=0) + 10


def create_note(
    session: Session,
    parent_note_id: str,
    title: str,
    content: str | bytes = "",
    note_type: str = "text",
    mime: str | None = None,
    note_id: str | None = None,
    prefix: str | None = None,
    is_protected: bool = False,
    note_position: int | None = None,
    template_note_id: str | None = None,
) -> tuple[Note, Branch]:
    """
    Create a note with its content and a branch placing it under the parent.
    Attributes of the parent named `child:<name>` are copied to the new
    note as `<name>`.

    :param session: Session owning the graph cache
    :param parent_note_id: Id of parent note
    :param title: Title of new note
    :param content: Initial content
    :param note_type: Note type
    :param mime: Mime type, or `None` to derive from type
    :param note_id: Id of new note, or `None` to generate one
    :param prefix: Branch prefix
    :param is_protected: Whether note is protected
    :param note_position: Position under parent, or `None` to append (or prepend if parent has `#newNotesOnTop`)
    :param template_note_id: Id of note to add as `~template`
    :raises ValidationError: If parent or template note doesn't exist
    :raises ProtectedSessionError: If creating under a protected parent or as protected outside protected session
    """
    from .branch.branch import Branch
    from .note.note import Note

    cache = session._cache
    parent_note = cache.notes.get(parent_note_id)

    _assert_validate(
        parent_note is not None, f"Parent note '{parent_note_id}' not found"
    )
    assert parent_note is not None

    if (
        parent_note.is_protected or is_protected
    ) and not session._protected.is_available():
        raise ProtectedSessionError(
            f"Cannot create note under protected parent '{parent_note_id}' outside protected session"
        )

    if template_note_id is not None:
        _assert_validate(
            template_note_id in cache.notes,
            f"Template note '{template_note_id}' does not exist",
        )

    with session.transaction():
        note = Note(
            NoteRow(
                note_id=note_id or new_entity_id(),
                title=title,
                type=note_type,
                mime=derive_mime(note_type, mime),
                is_protected=is_protected,
            ),
            session=session,
        ).save()

        note.set_content(content)

        branch = Branch(
            BranchRow(
                note_id=note.note_id,
                parent_note_id=parent_note_id,
                note_position=(
                    note_position
                    if note_position is not None
                    else get_new_note_position(parent_note)
                ),
                prefix=prefix,
            ),
            session=session,
        ).save()

        if template_note_id is not None:
            note.add_relation("template", template_note_id)

        _copy_child_attributes(parent_note, note)

        session._emit(
            EventType.CHILD_NOTE_CREATED,
            ChildNoteEvent(child_note=note, parent_note=parent_note),
        )

    session._logger.info(
        f"Created new note '{note.note_id}', branch '{branch.branch_id}' of type '{note.note_type}', mime '{note.mime}'"
    )

    return note, branch


def clone_note_to_parent(
    session: Session,
    note_id: str,
    parent_note_id: str,
    prefix: str | None = None,
) -> Branch:
    """
    Place an existing note under an additional parent.

    :raises ValidationError: If either note is missing, the parent is a saved search, or placement is invalid
    """
    from .branch.branch import Branch

    cache = session._cache

    _assert_validate(
        note_id in cache.notes and parent_note_id in cache.notes,
        "Note cannot be cloned because either the cloned note or the intended parent is deleted",
    )

    parent_note = cache.notes[parent_note_id]

    _assert_validate(
        parent_note.note_type != "search", "Can't clone into a search note"
    )

    validate_parent_child(cache, parent_note_id, note_id)

    branch = Branch(
        BranchRow(note_id=note_id, parent_note_id=parent_note_id, prefix=prefix),
        session=session,
    ).save()

    session._logger.info(
        f"Cloned note '{note_id}' to a new parent note '{parent_note_id}' with prefix '{prefix}'"
    )

    return branch


def move_branch(
    session: Session, branch: Branch, new_parent_note_id: str
) -> Branch:
    """
    Move a branch under a new parent, placed after existing children.
    Returns the branch which replaces it.

    :raises ValidationError: If placement is invalid
    """
    from .branch.branch import Branch

    cache = session._cache

    validate_parent_child(
        cache, new_parent_note_id, branch.note_id, branch_id=branch.branch_id
    )

    parent_note = cache.get_note_or_throw(new_parent_note_id)

    positions = [b.note_position or 0 for b in parent_note.get_child_branches()]

    with session.transaction():
        new_branch = Branch(
            BranchRow(
                note_id=branch.note_id,
                parent_note_id=new_parent_note_id,
                note_position=max(positions, default=-10) + 10,
                prefix=branch.prefix,
                is_expanded=branch.is_expanded,
            ),
            session=session,
        ).save()

        branch.mark_as_deleted()

    return new_branch


def validate_parent_child(
    cache: GraphCache,
    parent_note_id: str,
    child_note_id: str,
    branch_id: str | None = None,
):
    """
    Check that the child note can be placed under the parent.

    :param branch_id: Id of branch being moved, which may already connect the pair
    :raises ValidationError: If child is a fixed-location note, parent is `none`, the pair is already connected, or a cycle would result
    """
    if child_note_id in FIXED_LOCATION_NOTE_IDS:
        raise ValidationError("Cannot change this note's location")

    if parent_note_id == NONE_NOTE_ID:
        raise ValidationError("Cannot move anything into 'none' parent")

    existing_branch = cache.get_branch_from_child_and_parent(
        child_note_id, parent_note_id
    )

    if existing_branch is not None and existing_branch.branch_id != branch_id:
        child_title = cache.get_note_title(child_note_id)
        parent_title = cache.get_note_title(parent_note_id)

        raise ValidationError(
            f"Note '{child_title}' already exists in '{parent_title}'"
        )

    if would_create_cycle(cache, parent_note_id, child_note_id):
        raise ValidationError("Moving/cloning note here would create cycle")

    parent_note = cache.notes.get(parent_note_id)

    if (
        parent_note is not None
        and parent_note_id != "_lbBookmarks"
        and parent_note.note_type == "launcher"
    ):
        raise ValidationError("Launcher note cannot have any children")


def would_create_cycle(
    cache: GraphCache, parent_note_id: str, child_note_id: str
) -> bool:
    """
    Whether placing the child under the parent would make a note its own
    ancestor. The cycle can start anywhere in the child's subtree, so the
    parent's ancestry is checked against the whole subtree.
    """
    child_note = cache.notes.get(child_note_id)

    subtree_note_ids: set[str] = (
        set(child_note.get_subtree_note_ids(include_hidden=True))
        if child_note is not None
        else {child_note_id}
    )

    visited: set[str] = set()

    def has_cycle(note_id: str) -> bool:
        if note_id == ROOT_NOTE_ID:
            return False

        if note_id in subtree_note_ids:
            return True

        if note_id in visited:
            return False
        visited.add(note_id)

        note = cache.notes.get(note_id)
        if note is None:
            return False

        return any(has_cycle(parent.note_id) for parent in note.get_parent_notes())

    return has_cycle(parent_note_id)


def _copy_child_attributes(parent_note: Note, child_note: Note):
    """
    Copy parent's attributes named `child:<name>` to child as `<name>`.
    """
    has_template = child_note.has_relation("template")

    for attr in parent_note.get_attributes():
        if not attr.name.startswith(CHILD_ATTRIBUTE_PREFIX):
            continue

        name = attr.name[len(CHILD_ATTRIBUTE_PREFIX) :]

        if (
            has_template
            and attr.attribute_type is AttributeType.RELATION
            and name == "template"
        ):
            continue

        child_note.add_attribute(
            attr.attribute_type,
            name,
            attr.value,
            is_inheritable=attr.is_inheritable,
            position=attr.position,
        )
        child_note.invalidate_this_cache()
