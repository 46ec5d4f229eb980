"""
Note content, stored as content-addressed blobs.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any, cast

from ..events import EventType
from ..exceptions import ProtectedSessionError
from ..utils import hash_content, utc_now_datetime

if TYPE_CHECKING:
    from ..entity.model import NoteRow
    from ..session import Session
    from .note import Note

__all__ = [
    "NoteContent",
    "STRING_NOTE_TYPES",
    "BIN_NOTE_TYPES",
    "NOTE_TYPES",
    "STRING_MIME_TYPES",
    "is_string",
]


STRING_NOTE_TYPES = [
    "text",
    "code",
    "search",
    "relationMap",
    "noteMap",
    "render",
    "book",
    "mermaid",
    "canvas",
    "webView",
    "mindMap",
    "geoMap",
    "launcher",
    "doc",
    "contentWidget",
]
"""
Note types with text content.
"""

BIN_NOTE_TYPES = [
    "file",
    "image",
]
"""
Binary note types.
"""

NOTE_TYPES = STRING_NOTE_TYPES + BIN_NOTE_TYPES
"""
All note types.
"""

STRING_MIME_TYPES = {
    "application/javascript",
    "application/x-javascript",
    "application/json",
    "application/x-sql",
    "image/svg+xml",
}
"""
Mime types of binary note types which nonetheless hold text.
"""


def is_string(note_type: str, mime: str) -> bool:
    """
    Whether a note of this type and mime has text content. Checks for binary
    types so unknown types are treated as text.
    """
    return (
        note_type not in BIN_NOTE_TYPES
        or mime.startswith("text/")
        or mime in STRING_MIME_TYPES
    )


class NoteContent:
    """
    Mixin implementing content access. Content is stored in a blob keyed by
    its digest; protected content is encrypted before hashing.
    """

    note_id: str
    _row: NoteRow
    _session: Session

    @property
    def is_string(self) -> bool:
        """
        `True`{l=python} if note as it's currently configured has text content.
        """
        return is_string(self._row.type, self._row.mime)

    def has_string_content(self) -> bool:
        return self.is_string

    @property
    def is_content_available(self) -> bool:
        """
        Whether content can be read, i.e. note is unprotected or a protected
        session is active.
        """
        return not self._row.is_protected or self._session._protected.is_available()

    def get_content(self) -> str | bytes:
        """
        Get content as `str`{l=python} for text notes, otherwise
        `bytes`{l=python}. Protected content outside a protected session is
        returned empty.
        """
        data = self._get_blob()

        if self._row.is_protected and data:
            protected = self._session._protected

            if not protected.is_available():
                data = b""
            else:
                data = protected.decrypt(data.decode()) or b""

        return data.decode() if self.is_string else data

    def set_content(self, content: str | bytes):
        """
        Store new content. No-op if the content is unchanged.

        :raises ProtectedSessionError: If note is protected and no protected session is active
        """
        note = cast("Note", self)
        session = self._session

        data = content.encode() if isinstance(content, str) else content

        if self._row.is_protected:
            if not session._protected.is_available():
                raise ProtectedSessionError(
                    f"Cannot set content of protected note {note} outside protected session"
                )

            if data == self._get_decrypted_blob():
                return

            data = session._protected.encrypt(data).encode()

        blob_id = hash_content(data)

        if blob_id == self._row.blob_id:
            return

        with session.transaction():
            session._store.save_blob(blob_id, data, utc_now_datetime())

            self._row.blob_id = blob_id
            note._check_state()
            note.save()

            session._emit(EventType.NOTE_CONTENT_CHANGE, note._event())

    def get_json_content(self) -> Any:
        """
        Get content parsed as JSON, or `None` if content is blank.

        :raises json.JSONDecodeError: If content is not valid JSON
        """
        content = self.get_content()

        if isinstance(content, bytes):
            content = content.decode()

        if not content.strip():
            return None

        return json.loads(content)

    def set_json_content(self, content: Any):
        self.set_content(json.dumps(content, indent=4))

    @property
    def content_size(self) -> int:
        """
        Size of stored blob in bytes.
        """
        return len(self._get_blob())

    def _get_blob(self) -> bytes:
        if self._row.blob_id is None:
            return b""

        blob = self._session._store.get_blob(self._row.blob_id)
        return blob if blob is not None else b""

    def _get_decrypted_blob(self) -> bytes | None:
        data = self._get_blob()
        return self._session._protected.decrypt(data.decode()) if data else b""
