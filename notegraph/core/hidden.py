"""
Bootstrapping of a new document and the reserved hidden subtree.

The hidden subtree uses fixed ids for notes and their attributes so every
replica generates the same structure.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

from .entity.model import AttributeRow, BranchRow, NoteRow
from .exceptions import _assert_validate
from .utils import HIDDEN_NOTE_ID, NONE_NOTE_ID, ROOT_NOTE_ID

if TYPE_CHECKING:
    from .session import Session

__all__ = [
    "HiddenAttribute",
    "HiddenItem",
    "HIDDEN_SUBTREE",
    "check_hidden_subtree",
    "init_document",
]


class HiddenAttribute(BaseModel):
    type: str = "label"
    name: str
    value: str = ""
    is_inheritable: bool = False


class HiddenItem(BaseModel):
    """
    Definition of a note in the hidden subtree.
    """

    id: str = ""
    title: str = ""
    type: str = "doc"
    note_position: int | None = None
    is_expanded: bool | None = None
    attributes: list[HiddenAttribute] = Field(default_factory=list)
    children: list[HiddenItem] = Field(default_factory=list)


HIDDEN_SUBTREE = HiddenItem(
    id=HIDDEN_NOTE_ID,
    title="Hidden Notes",
    # keep last among root's children
    note_position=999_999_999,
    attributes=[
        HiddenAttribute(name="excludeFromNoteMap", is_inheritable=True),
        HiddenAttribute(name="docName", value="hidden"),
    ],
    children=[
        HiddenItem(id="_search", title="Search History"),
        HiddenItem(
            id="_share",
            title="Shared Notes",
            attributes=[HiddenAttribute(name="docName", value="share")],
        ),
        HiddenItem(
            id="_userHidden",
            title="User Hidden",
            attributes=[HiddenAttribute(name="docName", value="user_hidden")],
        ),
        HiddenItem(
            id="_lbRoot",
            title="Launch Bar",
            children=[
                HiddenItem(
                    id="_lbAvailableLaunchers",
                    title="Available Launchers",
                    is_expanded=True,
                ),
                HiddenItem(
                    id="_lbVisibleLaunchers",
                    title="Visible Launchers",
                    is_expanded=True,
                    children=[
                        HiddenItem(
                            id="_lbBookmarks",
                            title="Bookmarks",
                            type="launcher",
                            attributes=[
                                HiddenAttribute(
                                    name="builtinWidget", value="bookmarks"
                                )
                            ],
                        ),
                    ],
                ),
            ],
        ),
    ],
)


def init_document(session: Session, root_title: str = "root"):
    """
    Create root note and its branch if the store is empty, then ensure the
    hidden subtree exists.
    """
    from .branch.branch import Branch
    from .note.note import Note

    cache = session._cache

    if ROOT_NOTE_ID not in cache.notes:
        session._logger.info("Initializing new document")

        with session.transaction():
            Note(
                NoteRow(note_id=ROOT_NOTE_ID, title=root_title),
                session=session,
            ).save()

            Branch(
                BranchRow(
                    note_id=ROOT_NOTE_ID,
                    parent_note_id=NONE_NOTE_ID,
                    note_position=10,
                    is_expanded=True,
                ),
                session=session,
            ).save()

    check_hidden_subtree(session)


def check_hidden_subtree(session: Session, definition: HiddenItem = HIDDEN_SUBTREE):
    """
    Create missing notes and attributes of the hidden subtree and fix up
    note types, positions and expansion state which diverge from the
    definition.

    :raises ValidationError: If an item is missing its id or title, or its id doesn't start with `_`
    """
    with session.transaction():
        _check_item(session, ROOT_NOTE_ID, definition)


def _check_item(session: Session, parent_note_id: str, item: HiddenItem):
    from .attribute.attribute import BaseAttribute
    from .tree import create_note

    _assert_validate(
        bool(item.id and item.type and item.title),
        f"Item does not contain mandatory properties: {item.model_dump_json(exclude={'children'})}",
    )
    _assert_validate(
        item.id.startswith("_"), f"ID has to start with underscore, given '{item.id}'"
    )

    cache = session._cache
    note = cache.notes.get(item.id)

    if note is None:
        note, branch = create_note(
            session,
            parent_note_id,
            item.title,
            note_id=item.id,
            note_type=item.type,
            note_position=item.note_position,
        )
    else:
        branch = cache.get_branch_from_child_and_parent(item.id, parent_note_id)

    if note.note_type != item.type:
        note.note_type = item.type
        note.save()

    if branch is not None:
        if item.note_position is not None and branch.note_position != item.note_position:
            branch.note_position = item.note_position
            branch.save()

        if item.is_expanded is not None and branch.is_expanded != item.is_expanded:
            branch.is_expanded = item.is_expanded
            branch.save()

    for attr in item.attributes:
        attribute_id = f"{note.note_id}_{attr.type[0]}{attr.name}"

        if attribute_id not in cache.attributes:
            BaseAttribute._from_row(
                AttributeRow(
                    attribute_id=attribute_id,
                    note_id=note.note_id,
                    type=attr.type,
                    name=attr.name,
                    value=attr.value,
                    is_inheritable=attr.is_inheritable,
                ),
                session=session,
            ).save()

    for child in item.children:
        _check_item(session, item.id, child)
