import base64
import logging
from typing import Callable, Generator

from pytest import Config, FixtureRequest, fixture

from notegraph import (
    Branch,
    Cipher,
    Note,
    ProtectedSessionService,
    Session,
    SqlStore,
    init_document,
)

logging.basicConfig(level=logging.WARNING)

MARKERS = [
    "attribute",
    "note_title",
    "note_type",
    "note_mime",
    "hoisted",
]

DATA_KEY = b"secret"

type NoteFactory = Callable[..., Note]


def pytest_configure(config: Config) -> None:
    for marker in MARKERS:
        config.addinivalue_line("markers", marker)


class XorCipher(Cipher):
    """
    Reversible stand-in for the real encryption scheme. Decryption with a
    different key yields `None`.
    """

    def encrypt(self, key: bytes, plain: bytes) -> str:
        return base64.b64encode(key + b":" + _xor(key, plain)).decode()

    def decrypt(self, key: bytes, cipher_text: str) -> bytes | None:
        try:
            data = base64.b64decode(cipher_text)
        except ValueError:
            return None

        prefix = key + b":"

        if not data.startswith(prefix):
            return None

        return _xor(key, data[len(prefix) :])


def _xor(key: bytes, data: bytes) -> bytes:
    return bytes(b ^ key[i % len(key)] for i, b in enumerate(data))


@fixture
def logger() -> logging.Logger:
    return logging.getLogger("notegraph.test")


@fixture
def session(
    request: FixtureRequest, logger: logging.Logger
) -> Generator[Session, None, None]:
    """
    Session over a fresh in-memory database with root and the hidden
    subtree created.
    """
    marker = request.node.get_closest_marker("hoisted")

    session = Session(
        SqlStore(),
        protected=ProtectedSessionService(XorCipher()),
        logger=logger,
    )
    init_document(session)

    if marker is not None:
        session.hoisted_note_id = marker.args[0]

    yield session

    session.teardown()


@fixture
def protected_session(session: Session) -> Session:
    """
    Session with protected session entered.
    """
    session.enter_protected_session(DATA_KEY)
    return session


@fixture
def make_note(session: Session) -> NoteFactory:
    """
    Get factory creating notes, by default under root.
    """

    def factory(
        title: str,
        parent: Note | str = "root",
        content: str | bytes = "",
        **kwargs,
    ) -> Note:
        parent_note_id = parent if isinstance(parent, str) else parent.note_id
        note, _ = session.create_note(parent_note_id, title, content, **kwargs)
        return note

    return factory


@fixture
def note(request: FixtureRequest, session: Session) -> Note:
    """
    Note under root, configured by markers:

    - `@mark.note_title("title")`
    - `@mark.note_type("code")`, `@mark.note_mime("text/css")`
    - `@mark.attribute("label", "name", "value", inheritable=True)`

    Each marker may target another note fixture using `fixture="note1"`.
    """
    return create_note_fixture(request, session, "note")


@fixture
def note1(request: FixtureRequest, session: Session) -> Note:
    return create_note_fixture(request, session, "note1")


@fixture
def note2(request: FixtureRequest, session: Session, note1: Note) -> Note:
    """
    Take note1 to ensure it's created first, so note2 can be placed under it
    by `branch`.
    """
    return create_note_fixture(request, session, "note2")


@fixture
def branch(session: Session, note1: Note, note2: Note) -> Branch:
    """
    Clone note2 under note1.
    """
    return session.clone_note_to_parent(note2.note_id, note1.note_id)


"""
Helper functions to implement fixtures.
"""


def create_note_fixture(
    request: FixtureRequest, session: Session, fixture_name: str
) -> Note:
    def get_marker_arg(name: str) -> str | None:
        marker = request.node.get_closest_marker(name)

        if marker and marker.kwargs.get("fixture", "note") == fixture_name:
            return marker.args[0]

        return None

    note_type = get_marker_arg("note_type") or "text"

    note, _ = session.create_note(
        "root",
        get_marker_arg("note_title") or f"Title of {fixture_name}",
        note_type=note_type,
        mime=get_marker_arg("note_mime"),
    )

    markers = [
        m
        for m in request.node.iter_markers("attribute")
        if m.kwargs.get("fixture", "note") == fixture_name
    ]

    for marker in markers:
        attribute_type, name, *rest = marker.args
        value = rest[0] if rest else ""

        note.add_attribute(
            attribute_type,
            name,
            value,
            is_inheritable=marker.kwargs.get("inheritable", False),
        )

    return note
