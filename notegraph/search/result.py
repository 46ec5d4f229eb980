"""
A search hit and its relevance score.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..core.note.note import Note
    from ..core.session import Session

__all__ = [
    "SearchResult",
]

ID_MATCH_SCORE = 100
EXACT_TITLE_SCORE = 100

TITLE_FACTOR = 1.5
PATH_TITLE_FACTOR = 1.0


class SearchResult:
    """
    Note found by a search, presented through a particular path.
    """

    note_path_array: list[str]
    note_path_title: str
    score: float

    highlighted_note_path_title: str | None
    """
    Path title with matched tokens marked up, set when highlighting.
    """

    _session: Session

    def __init__(self, session: Session, note_path_array: list[str]):
        self._session = session
        self.note_path_array = note_path_array
        self.note_path_title = session._cache.get_note_title_for_path(
            note_path_array, session.hoisted_note_id
        )
        self.score = 0
        self.highlighted_note_path_title = None

    def __repr__(self):
        return f"SearchResult(note_path={self.note_path}, score={self.score})"

    @property
    def note_path(self) -> str:
        return "/".join(self.note_path_array)

    @property
    def note_id(self) -> str:
        return self.note_path_array[-1]

    @property
    def note(self) -> Note:
        return self._session._cache.notes[self.note_id]

    def compute_score(self, fulltext_query: str, tokens: list[str]):
        """
        Score by how well the note's id, title and path title match the
        query. Notes in the hidden subtree get half the score.
        """
        note = self.note
        title = note.title.lower()

        self.score = 0

        if note.note_id.lower() == fulltext_query:
            self.score += ID_MATCH_SCORE

        if title == fulltext_query:
            self.score += EXACT_TITLE_SCORE

        self._add_score_for_strings(tokens, note.title, TITLE_FACTOR)
        self._add_score_for_strings(tokens, self.note_path_title, PATH_TITLE_FACTOR)

        if note.is_in_hidden_subtree():
            self.score /= 2

    def _add_score_for_strings(self, tokens: list[str], text: str, factor: float):
        for chunk in text.lower().split(" "):
            for token in tokens:
                if chunk == token:
                    self.score += 4 * len(token) * factor
                elif chunk.startswith(token):
                    self.score += 2 * len(token) * factor
                elif token in chunk:
                    self.score += len(token) * factor
