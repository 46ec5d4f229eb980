"""
Common utilities.
"""

import datetime
import hashlib
import re
import secrets
import string
import unicodedata
from functools import cache

__all__ = [
    "ROOT_NOTE_ID",
    "HIDDEN_NOTE_ID",
    "INHERIT_RELATIONS",
    "TEMPLATE_LABELS",
    "base_n_hash",
    "normalize",
]

ROOT_NOTE_ID = "root"
"""
Id of root note.
"""

ROOT_BRANCH_ID = "none_root"
"""
Id of the branch placing root under the virtual `none` parent.
"""

NONE_NOTE_ID = "none"
"""
Virtual parent of root; never materialized.
"""

HIDDEN_NOTE_ID = "_hidden"
"""
Id of the root of the reserved hidden subtree.
"""

WEAK_PARENT_NOTE_IDS = frozenset(["_share", "_lbBookmarks"])
"""
Parents whose child branches don't count as real parentage.
"""

INHERIT_RELATIONS = ["template", "inherit"]
"""
Relations through which a note takes on another note's attributes.
"""

TEMPLATE_LABELS = ["template", "workspacetemplate"]
"""
Marker labels which don't propagate through template relations.
"""

AUTO_LINK_RELATIONS = frozenset(
    ["internalLink", "imageLink", "relationMapLink", "includeNoteLink"]
)
"""
Relations maintained automatically from note content.
"""

PROTECTED_PLACEHOLDER = "[protected]"
"""
Shown in place of protected titles outside a protected session.
"""

UNREACHABLE_DISTANCE = 999999
"""
Distance reported to an ancestor which can't be reached.
"""

ALPHANUMERIC = string.ascii_letters + string.digits


def base_n_hash(data: bytes, chars: str) -> str:
    """
    Hash data using SHAKE-128 and encode as a base-N string, where N is
    len(chars).
    """
    assert len(chars)

    # get hash value as a large integer
    digest = hashlib.shake_128(data).digest(16)
    int_digest = int.from_bytes(digest)

    result = ""
    while int_digest:
        int_digest, index = divmod(int_digest, len(chars))
        result += chars[index]

    # pad result to max length
    return result.ljust(_get_max_len(128, len(chars)), "0")


@cache
def _get_max_len(bit_count: int, char_count: int) -> int:
    """
    Get max length of the resulting hash for the given # bits and # characters
    used to represent it.
    """
    max_digest = (1 << bit_count) - 1
    max_len = 0
    while max_digest:
        max_digest = max_digest // char_count
        max_len += 1
    return max_len


def new_entity_id() -> str:
    """
    Generate a random id for a new note or attribute.
    """
    return "".join(secrets.choice(ALPHANUMERIC) for _ in range(12))


def hash_values(*values: object) -> str:
    """
    Get a short, stable hash of the given values.
    """
    data = "|".join("" if v is None else str(v) for v in values)
    return base_n_hash(data.encode(), ALPHANUMERIC)[:20]


def hash_content(content: str | bytes) -> str:
    """
    Get blob id for the given content.
    """
    data = content.encode() if isinstance(content, str) else content
    return base_n_hash(data, ALPHANUMERIC)[:20]


def normalize(text: str) -> str:
    """
    Lowercase and strip diacritics, for case/accent-insensitive matching.
    """
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(
        c for c in decomposed if not unicodedata.combining(c)
    ).lower()


def sanitize_attribute_name(name: str) -> str:
    """
    Strip `#`/`~` prefix and replace characters not allowed in attribute
    names.
    """
    name = name.strip().lstrip("#~")

    # \w covers letters, digits and underscore in unicode mode
    return re.sub(r"[^\w:]", "_", name)


def utc_now_datetime() -> str:
    """
    Current UTC time as stored in `utcDate*` fields.
    """
    now = datetime.datetime.now(datetime.UTC)
    return now.strftime("%Y-%m-%d %H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


def local_now_datetime() -> str:
    """
    Current local time with offset, as stored in `date*` fields.
    """
    now = datetime.datetime.now().astimezone()
    return (
        now.strftime("%Y-%m-%d %H:%M:%S.")
        + f"{now.microsecond // 1000:03d}"
        + now.strftime("%z")
    )
