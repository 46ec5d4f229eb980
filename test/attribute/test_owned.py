"""
Test owned attribute mutation primitives and queries.
"""

from pytest import mark, raises

from notegraph import *


def test_add(session: Session, note: Note):
    label = note.add_label("label1", "value1")

    assert label.attribute_id is not None
    assert label.note is note
    assert label.value == "value1"
    assert label.is_inheritable is False
    assert label.state is State.CLEAN

    assert note.get_owned_attributes() == [label]
    assert note.get_labels("label1") == [label]
    assert note["label1"] == "value1"
    assert "label1" in note

    # persisted
    assert label.attribute_id in session.cache.attributes


def test_position(note: Note):
    label1 = note.add_label("label1")
    label2 = note.add_label("label2")
    label3 = note.add_attribute("label", "label3", position=5)

    assert label1.position == 10
    assert label2.position == 20

    # sorted by position
    assert note.get_owned_attributes() == [label3, label1, label2]


def test_name_normalization(note: Note):
    label = note.add_label("#my label-name")
    assert label.name == "my_label_name"

    label = note.add_label("ns:name")
    assert label.name == "ns:name"


def test_invalid(session: Session, note: Note):
    # empty name
    with raises(ValidationError):
        note.add_label("")

    # relation to nonexistent note
    with raises(ValidationError):
        note.add_relation("relation1", "nonexistent")

    # invalid type
    with raises(ValidationError):
        note.add_attribute("tag", "label1")

    assert len(note.get_owned_attributes()) == 0


def test_query_validation(note: Note):
    with raises(ValidationError):
        note.get_attributes("tag")

    with raises(ValidationError):
        note.get_attributes("label", "#label1")

    with raises(ValidationError):
        note.get_owned_attributes("relation", "~relation1")


@mark.attribute("label", "label1", "value1")
def test_set(note: Note):
    label = note.get_owned_label("label1")
    assert label is not None

    date_modified = label.utc_date_modified

    # unchanged value is a no-op
    assert note.set_label("label1", "value1") is label
    assert label.state is State.CLEAN
    assert label.utc_date_modified == date_modified

    # update first owned match
    assert note.set_label("label1", "value2") is label
    assert label.value == "value2"
    assert label.state is State.CLEAN

    # create if missing; None becomes empty value
    label2 = note.set_label("label2", None)
    assert label2.value == ""
    assert note.has_owned_label("label2")


@mark.attribute("label", "label1", "value1")
@mark.attribute("label", "label1", "value2")
def test_remove(note: Note):
    assert len(note.get_owned_labels("label1")) == 2

    note.remove_label("label1", "value1")
    assert [label.value for label in note.get_owned_labels("label1")] == [
        "value2"
    ]

    note.remove_label("label1")
    assert not note.has_label("label1")


def test_toggle(note: Note):
    note.toggle_label(True, "label1", "value1")
    assert note.get_label_value("label1") == "value1"

    note.toggle_label(False, "label1")
    assert note.get_label("label1") is None


def test_relation(session: Session, note1: Note, note2: Note):
    relation = note1.add_relation("relation1", note2.note_id)

    assert relation.target_note is note2
    assert note1.get_relation_target("relation1") is note2
    assert note1.get_relation_value("relation1") == note2.note_id
    assert note2.get_target_relations() == [relation]

    assert note1.relation_count == 1
    assert note1.owned_relation_count == 1
    assert note2.target_relation_count == 1

    # auto-link relations don't count, except in "including links" counts
    note1.add_relation("internalLink", note2.note_id)

    assert note1.relation_count == 1
    assert note1.relation_count_including_links == 2
    assert note2.target_relation_count == 1
    assert note2.target_relation_count_including_links == 2

    # retarget
    relation.value = "root"
    relation.save()

    assert relation.target_note is session.root
    assert relation not in note2.get_target_relations()
    assert relation in session.root.get_target_relations()


def test_relation_missing_target(session: Session, note1: Note, note2: Note):
    relation = note1.add_relation("relation1", note2.note_id)

    with raises(ValidationError):
        note1.set_relation("relation1", "missing")

    # rejected before any change
    assert relation.value == note2.note_id
    assert relation.state is State.CLEAN
    assert note2.get_target_relations() == [relation]
    assert note1.get_relation_target("relation1") is note2

    with raises(ValidationError):
        relation.value = "missing"

    assert relation.target_note is note2

    session.cache.load()

    reloaded = session.get_note_or_throw(note1.note_id)
    assert reloaded.get_relation_value("relation1") == note2.note_id


def test_truthy(note: Note):
    assert not note.is_label_truthy("label1")

    note.add_label("label1", "false")
    assert not note.is_label_truthy("label1")

    note.set_label("label1", "")
    assert note.is_label_truthy("label1")


@mark.attribute("label", "Label1", "Value1")
def test_case_insensitive(note: Note):
    assert note.get_attribute_case_insensitive("label", "label1") is not None
    assert (
        note.get_attribute_case_insensitive("label", "LABEL1", "value1")
        is not None
    )
    assert note.get_attribute_case_insensitive("label", "label1", "x") is None
    assert note.get_attribute_case_insensitive("relation", "label1") is None


def test_read_only(note: Note):
    label = note.add_label("label1")

    with raises(ReadOnlyError):
        label.name = "label2"

    with raises(ReadOnlyError):
        note.note_id = "abc"


def test_delete_state(session: Session, note: Note):
    label = note.add_label("label1")
    attribute_id = label.attribute_id
    assert attribute_id is not None

    label.mark_as_deleted()

    assert label.is_deleted
    assert label.state is State.DELETE
    assert attribute_id not in session.cache.attributes
    assert session.cache.find_attributes("label", "label1") == []

    with raises(ValidationError):
        label.value = "value1"
