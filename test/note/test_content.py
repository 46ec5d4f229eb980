"""
Test note content and protected notes.
"""

from typing import Callable

from pytest import mark, raises

from notegraph import *

type NoteFactory = Callable[..., Note]

DATA_KEY = b"secret"


def test_content(session: Session, make_note: NoteFactory):
    note = make_note("note", content="<p>Hello</p>")

    assert note.get_content() == "<p>Hello</p>"
    assert note.content_size == len("<p>Hello</p>")
    assert note.blob_id is not None

    blob_id = note.blob_id

    # unchanged content keeps blob
    note.set_content("<p>Hello</p>")
    assert note.blob_id == blob_id

    note.set_content("<p>World</p>")
    assert note.blob_id != blob_id
    assert note.get_content() == "<p>World</p>"


def test_json(make_note: NoteFactory):
    note = make_note("note", note_type="code", mime="application/json")

    assert note.is_json
    assert note.get_json_content() is None

    note.set_json_content({"key": [1, 2]})
    assert note.get_json_content() == {"key": [1, 2]}


def test_binary(make_note: NoteFactory):
    note = make_note(
        "image", content=b"\x89PNG", note_type="image", mime="image/png"
    )

    assert not note.is_string
    assert note.is_image
    assert note.get_content() == b"\x89PNG"

    svg = make_note("svg", note_type="file", mime="image/svg+xml")
    assert svg.is_string


def test_mime(make_note: NoteFactory):
    assert make_note("text").mime == "text/html"
    assert make_note("code", note_type="code").mime == "text/plain"
    assert make_note("search", note_type="search").mime == "application/json"
    assert make_note("book", note_type="book").mime == ""
    assert make_note("file", note_type="file").mime == "application/octet-stream"

    assert derive_mime("code", "text/css") == "text/css"


def test_script_env(make_note: NoteFactory):
    script = make_note(
        "script", note_type="code", mime="application/javascript;env=backend"
    )

    assert script.is_javascript
    assert script.get_script_env() is None

    script.add_label("backend")
    assert script.get_script_env() == "backend"

    render = make_note("render", note_type="render")
    assert render.get_script_env() == "frontend"


def test_invalid_type(session: Session, make_note: NoteFactory):
    with raises(ValidationError):
        make_note("note", note_type="unknown")


def test_duplicate_id(session: Session, make_note: NoteFactory):
    note = make_note("note", note_id="abc123")

    with raises(ValidationError):
        make_note("other", note_id=note.note_id)

    assert session.get_note_or_throw("abc123").title == "note"


def test_missing_parent(make_note: NoteFactory):
    with raises(ValidationError):
        make_note("note", "nonexistent")


def test_child_attributes(make_note: NoteFactory):
    parent = make_note("parent")
    parent.add_label("child:color", "red")
    template = make_note("template")
    parent.add_relation("child:template", template.note_id)

    child = make_note("child", parent)

    assert child.get_owned_label_value("color") == "red"
    assert child.get_relation_value("template") == template.note_id


@mark.note_title("Secret")
def test_protected(protected_session: Session, note: Note):
    session = protected_session

    note.set_content("secret content")
    note.set_protected(True)

    # stored encrypted
    assert note.row.title != "Secret"
    assert note.title == "Secret"
    assert note.get_content() == "secret content"

    session.leave_protected_session()

    assert note.title == "[protected]"
    assert not note.is_decrypted
    assert not note.is_content_available
    assert note.get_content() == ""

    with raises(ProtectedSessionError):
        note.set_content("changed")

    with raises(ProtectedSessionError):
        note.title = "changed"

    with raises(ProtectedSessionError):
        note.set_protected(False)

    session.enter_protected_session(DATA_KEY)

    assert note.title == "Secret"

    note.set_protected(False)

    assert note.row.title == "Secret"
    assert note.get_content() == "secret content"


def test_protected_create(protected_session: Session, make_note: NoteFactory):
    session = protected_session

    parent = make_note("parent", is_protected=True, content="content")

    assert parent.title == "parent"
    assert parent.row.title != "parent"

    session.leave_protected_session()

    # can't create under protected parent outside protected session
    with raises(ProtectedSessionError):
        make_note("child", parent)

    # wrong key yields no title
    session.enter_protected_session(b"wrong")
    assert parent.title == "[protected]"


def test_protected_reload(protected_session: Session, make_note: NoteFactory):
    """
    Protected titles are decrypted upon loading.
    """
    session = protected_session
    note = make_note("title", is_protected=True)

    session.cache.load()

    loaded = session.get_note_or_throw(note.note_id)
    assert loaded is not note
    assert loaded.title == "title"


def test_protected_timeout():
    protected = ProtectedSessionService(PlainCipher(), timeout=0)
    protected.set_data_key(DATA_KEY)

    assert protected.is_available()
    assert not ProtectedSessionService(PlainCipher()).check_timeout()

    # any elapsed time exceeds a zero timeout
    while not protected.check_timeout():
        pass

    assert not protected.is_available()


def test_no_cipher():
    with raises(ProtectedSessionError):
        ProtectedSessionService().set_data_key(DATA_KEY)


class PlainCipher(Cipher):
    def encrypt(self, key: bytes, plain: bytes) -> str:
        return plain.decode()

    def decrypt(self, key: bytes, cipher_text: str) -> bytes | None:
        return cipher_text.encode()
