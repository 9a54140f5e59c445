"""
Directory Tree Walker
=====================

Depth-first traversal of a directory subtree.

Design Decisions:
-----------------
1. Pre-order: a child is yielded before its own children are listed, so
   callers can act on it while the walk continues lazily
2. In containers-only mode, non-container children are neither yielded nor
   descended into
3. A subtree whose listing fails is dropped and the walk moves on to its
   siblings; only a debug message records it
"""

from typing import Callable, Iterator, Optional

from .client import DirectoryClient, DirectoryError


class TreeWalker:
    """Walks the descendants of a root DN.

    Usage:
        walker = TreeWalker(client, containers_only=True)
        for dn in walker.walk("DC=corp,DC=local"):
            print(dn)
    """

    def __init__(
        self,
        client: DirectoryClient,
        containers_only: bool = False,
        debug: bool = False,
        progress_callback: Optional[Callable[[str], None]] = None
    ):
        self.client = client
        self.containers_only = containers_only
        self.debug = debug
        self.progress_callback = progress_callback
        self.skipped_branches: list[str] = []

    def _log(self, message: str) -> None:
        if self.debug:
            print(message)
        if self.progress_callback and self.debug:
            self.progress_callback(message)

    def walk(self, root_dn: str) -> Iterator[str]:
        """Yield descendant DNs of root_dn, depth first.

        The root itself is not yielded.
        """
        stack = [iter(self._children(root_dn))]
        while stack:
            child = next(stack[-1], None)
            if child is None:
                stack.pop()
                continue
            yield child
            stack.append(iter(self._children(child)))

    def _children(self, dn: str) -> list[str]:
        try:
            children = self.client.list_children(dn)
        except DirectoryError as e:
            self.skipped_branches.append(dn)
            self._log(f"[*] Skipping subtree {dn}: {e.message}")
            return []

        if self.containers_only:
            children = [c for c in children if c.object_class.is_container]
        return [c.distinguished_name for c in children]
