"""
Firebase database node model.

Paths, node values and database URLs as they are exchanged with
the Firebase Realtime Database.
"""

import hashlib
import json
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterator, Mapping, Optional
from urllib.parse import urlparse

from .push_id import generate_push_id

if TYPE_CHECKING:
    from ..query.models import Query

# The representation of a deleted child.
# Firebase treats a child written as `null` as nonexistent.
NULL_MARKER = "null"

_FORBIDDEN_KEY_CHARS = re.compile(r"[.$#\[\]]")


class MalformedNodeValueError(ValueError):
    """Raised when stored node data is not a JSON object of children."""
    pass


def to_compact_json(data) -> str:
    """Serialize a record the way it is stored in a node."""
    return json.dumps(data, separators=(",", ":"), ensure_ascii=False)


@dataclass(frozen=True)
class DatabaseUrl:
    """Validated URL of a Firebase database."""
    url: str

    def __post_init__(self):
        parsed = urlparse(self.url or "")
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError(f"Invalid Firebase database URL: '{self.url}'")
        object.__setattr__(self, "url", self.url.rstrip("/"))

    @classmethod
    def from_string(cls, url: str) -> "DatabaseUrl":
        return cls(url=url)

    def __str__(self) -> str:
        return self.url


@dataclass(frozen=True)
class NodePath:
    """
    Location of a node in the database tree.

    Equal paths address the same node. The string form doubles as
    a subscription id, so a path can always be recovered from it.
    """
    path: str

    def __post_init__(self):
        segments = [s for s in (self.path or "").split("/") if s]
        if not segments:
            raise ValueError("Node path must not be empty")
        for segment in segments:
            if _FORBIDDEN_KEY_CHARS.search(segment):
                raise ValueError(
                    f"Node path segment '{segment}' contains one of '. $ # [ ]'"
                )
        object.__setattr__(self, "path", "/".join(segments))

    @classmethod
    def from_string(cls, path: str) -> "NodePath":
        return cls(path=path)

    @classmethod
    def allocate_for_query(cls, query: "Query") -> "NodePath":
        """
        Derive the node path which holds results of the given query.

        Queries bound to a topic resolve to the same path as long as
        the topic is the same, regardless of the query's own id.
        """
        identity = query.topic_id or query.id
        target = _FORBIDDEN_KEY_CHARS.sub("_", query.target).replace("/", "_")
        digest = hashlib.sha256(f"{target}:{identity}".encode("utf-8")).hexdigest()
        return cls(path=f"{target}/{digest[:32]}")

    def child(self, key: str) -> "NodePath":
        return NodePath(path=f"{self.path}/{key}")

    def __str__(self) -> str:
        return self.path


class NodeValue(Mapping[str, str]):
    """
    Content of a database node: child keys mapped to serialized records.

    Children are added either under an explicit key or "pushed",
    in which case a unique push id becomes the key.

    Usage:
        value = NodeValue.empty()
        value.add_child('{"id":1}')             # pushed child
        value.add_child("null", key="-Nabc")    # tombstone
    """

    def __init__(self, children: Optional[Mapping[str, str]] = None):
        self._children: dict[str, str] = dict(children or {})

    @classmethod
    def empty(cls) -> "NodeValue":
        return cls()

    @classmethod
    def from_json(cls, data: str) -> "NodeValue":
        """
        Parse the JSON document stored at a node.

        Tombstoned children are skipped. Children that are not strings
        are kept in their compact JSON form.

        Raises:
            MalformedNodeValueError: If the document is not a JSON object
        """
        try:
            parsed = json.loads(data)
        except (TypeError, ValueError) as e:
            raise MalformedNodeValueError(f"Node data is not valid JSON: {e}") from e
        return cls.from_dict(parsed)

    @classmethod
    def from_dict(cls, parsed) -> "NodeValue":
        if not isinstance(parsed, dict):
            raise MalformedNodeValueError(
                f"Expected a JSON object of children, got {type(parsed).__name__}"
            )
        children = {}
        for key, value in parsed.items():
            if value is None or value == NULL_MARKER:
                continue
            children[key] = value if isinstance(value, str) else to_compact_json(value)
        return cls(children)

    def add_child(self, data: str, key: Optional[str] = None) -> str:
        """
        Add a child to this value.

        Args:
            data: Serialized record, or NULL_MARKER to delete the child
            key: Explicit child key; a push id is generated if omitted

        Returns:
            The key of the added child
        """
        if data is None:
            raise ValueError("Child data must not be None")
        if key is None:
            key = generate_push_id()
        elif not key or "/" in key or _FORBIDDEN_KEY_CHARS.search(key):
            raise ValueError(f"Invalid child key: '{key}'")
        self._children[key] = data
        return key

    def to_dict(self) -> dict[str, Optional[str]]:
        """Children in their wire form, tombstones as None."""
        return {
            key: None if value == NULL_MARKER else value
            for key, value in self._children.items()
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), separators=(",", ":"), ensure_ascii=False)

    def __getitem__(self, key: str) -> str:
        return self._children[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._children)

    def __len__(self) -> int:
        return len(self._children)

    def __repr__(self) -> str:
        return f"NodeValue({self._children!r})"
