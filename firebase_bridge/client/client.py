"""
Client interface of the Firebase Realtime Database.
"""

from abc import ABC, abstractmethod
from typing import Optional

from .node import NodePath, NodeValue


class FirebaseClient(ABC):
    """
    Reads and writes database nodes.

    Implementations must keep two rules:
    - a missing node is reported as None, never as a value holding null
    - merge never erases sibling children it was not given
    """

    @abstractmethod
    def get(self, path: NodePath) -> Optional[NodeValue]:
        """
        Retrieve the content of a node.

        Args:
            path: Path to the node

        Returns:
            The node value, or None if the node does not exist

        Raises:
            MalformedNodeValueError: If the node holds something other
                than an object of children
        """

    @abstractmethod
    def merge(self, path: NodePath, value: NodeValue) -> None:
        """
        Add the given children to a node.

        The node is created if it does not exist. Otherwise only the
        given children are written; the rest stay untouched.
        """
