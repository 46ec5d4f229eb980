"""
Test promoted attribute definitions.
"""

from pytest import mark, raises

from notegraph import *


@mark.attribute("label", "label:isbn", "promoted,single,text,alias=ISBN")
@mark.attribute("label", "label:price", "promoted,number,precision=2")
@mark.attribute("label", "relation:author", "promoted,multi,inverse=wrote")
@mark.attribute("label", "label1")
def test_parse(note: Note):
    isbn = note.get_label("label:isbn")
    assert isbn is not None
    assert isbn.is_definition
    assert isbn.get_defined_name() == "isbn"

    definition = isbn.get_definition()
    assert definition.is_promoted
    assert definition.multiplicity == "single"
    assert definition.label_type == "text"
    assert definition.promoted_alias == "ISBN"

    price = note.get_label("label:price")
    assert price is not None
    assert price.get_definition().number_precision == 2

    author = note.get_label("relation:author")
    assert author is not None
    assert author.get_defined_name() == "author"

    definition = author.get_definition()
    assert definition.multiplicity == "multi"
    assert definition.inverse_relation == "wrote"
    assert definition.to_value() == "promoted,multi,inverse=wrote"

    label1 = note.get_label("label1")
    assert label1 is not None
    assert not label1.is_definition
    assert label1.get_defined_name() == "label1"


def test_malformed(note: Note):
    label = note.add_label("label:price", "promoted,number,precision=abc")

    with raises(ValidationError):
        label.get_definition()


def test_unknown_token(note: Note):
    label = note.add_label("label:isbn", "promoted,bogus")

    definition = label.get_definition()
    assert definition.is_promoted
    assert definition.label_type is None


@mark.attribute("label", "label:isbn", "promoted,text")
@mark.attribute("label", "relation:author", "promoted")
def test_note_definitions(note: Note):
    """
    Both getters return relation definitions.
    """
    names = ["relation:author"]

    assert [label.name for label in note.get_relation_definitions()] == names
    assert [label.name for label in note.get_label_definitions()] == names
