# Copyright 2025 Softwell S.r.l. - Genropy Team
# SPDX-License-Identifier: Apache-2.0

"""ModuleTree - the structural tree of module definitions.

Nodes are kept in an arena (``dict[int, ModuleNode]``) and refer to each
other through integer ids: a node stores its children as ``name -> id`` and
its parent as an id. The tree never owns state or handlers; it only knows
the shape of the definitions.

Path Syntax:
    - Dotted string: 'cart.items'
    - Sequence of segments: ['cart', 'items'] or ('cart', 'items')
    - Root: '' or () or []

Example:
    >>> tree = ModuleTree({'modules': {'cart': {'namespaced': True}}})
    >>> tree.get('cart').namespaced
    True
    >>> tree.has(['cart', 'items'])
    False
"""

from __future__ import annotations

import itertools
import logging
from collections.abc import Mapping, Sequence
from typing import Any, Iterator

from .exceptions import ConfigurationError, PathNotFoundError
from .node import ModuleNode, check_raw_module

logger = logging.getLogger(__name__)

PathLike = str | Sequence[str]


def normalize_path(path: PathLike) -> tuple[str, ...]:
    """Convert a dotted string or a sequence of segments to a tuple.

    Raises:
        ConfigurationError: If a segment is empty or not a string.
    """
    if isinstance(path, str):
        parts: Sequence[Any] = path.split('.') if path else ()
    else:
        parts = path
    result = tuple(parts)
    for part in result:
        if not isinstance(part, str) or not part:
            raise ConfigurationError(f"invalid path segment {part!r} in {path!r}")
    return result


def check_raw_tree(raw: Any, path: tuple[str, ...] = ()) -> None:
    """Validate a definition and all its nested modules."""
    check_raw_module(raw, path)
    for name, child in (raw.get('modules') or {}).items():
        check_raw_tree(child, path + (name,))


class ModuleTree:
    """Tree of ModuleNode built from a root module definition.

    Provides:
    - get(path) / find(path) / has(path): lookup by path
    - register(path, raw) / unregister(path): attach or detach a subtree
    - update(raw): replace raw handlers in place (hot reload)
    - walk(): depth-first iteration in installation order
    """

    __slots__ = ('_nodes', '_ids', 'root_id')

    def __init__(self, raw_root: Mapping[str, Any] | None = None) -> None:
        """Build the tree.

        Args:
            raw_root: The root module definition. None means an empty root.

        Raises:
            ConfigurationError: If any definition in the tree is malformed.
        """
        self._nodes: dict[int, ModuleNode] = {}
        self._ids = itertools.count()
        raw_root = raw_root if raw_root is not None else {}
        check_raw_tree(raw_root)
        self.root_id = self._build(raw_root, (), None, runtime=False).node_id

    def __repr__(self) -> str:
        return f"ModuleTree({len(self._nodes)} nodes)"

    def __len__(self) -> int:
        return len(self._nodes)

    def _build(
        self,
        raw: Mapping[str, Any],
        path: tuple[str, ...],
        parent_id: int | None,
        runtime: bool,
    ) -> ModuleNode:
        """Create a node for ``raw`` and, depth-first, for its modules."""
        node = ModuleNode(next(self._ids), path, raw, parent_id=parent_id, runtime=runtime)
        self._nodes[node.node_id] = node
        for name, child_raw in (raw.get('modules') or {}).items():
            child = self._build(child_raw, path + (name,), node.node_id, runtime)
            node.children[name] = child.node_id
        return node

    # ==================== Navigation ====================

    @property
    def root(self) -> ModuleNode:
        return self._nodes[self.root_id]

    def node(self, node_id: int) -> ModuleNode:
        """Return the node with the given id."""
        return self._nodes[node_id]

    def parent(self, node: ModuleNode) -> ModuleNode | None:
        """Return the parent node, or None for the root."""
        if node.parent_id is None:
            return None
        return self._nodes[node.parent_id]

    def children(self, node: ModuleNode) -> list[ModuleNode]:
        """Return the direct children in declaration order."""
        return [self._nodes[child_id] for child_id in node.children.values()]

    def find(self, path: PathLike) -> ModuleNode | None:
        """Return the node at ``path`` or None if any segment is missing."""
        node = self.root
        for key in normalize_path(path):
            child_id = node.children.get(key)
            if child_id is None:
                return None
            node = self._nodes[child_id]
        return node

    def get(self, path: PathLike) -> ModuleNode:
        """Return the node at ``path``.

        Raises:
            PathNotFoundError: If any segment is missing.
        """
        node = self.find(path)
        if node is None:
            raise PathNotFoundError(f"module '{'.'.join(normalize_path(path))}' not found")
        return node

    def has(self, path: PathLike) -> bool:
        """True if ``path`` exists. Malformed paths simply do not exist."""
        try:
            return self.find(path) is not None
        except ConfigurationError:
            return False

    def snapshot(self, node: ModuleNode) -> dict[str, Any]:
        """Return a definition rebuilding ``node`` with its current children.

        Children registered at runtime are included, so registering the
        snapshot again gives back the same subtree shape.
        """
        raw = dict(node.raw)
        raw['modules'] = {child.key: self.snapshot(child) for child in self.children(node)}
        return raw

    def walk(self, node: ModuleNode | None = None) -> Iterator[ModuleNode]:
        """Yield ``node`` and its descendants depth-first, parents first."""
        node = node if node is not None else self.root
        yield node
        for child in self.children(node):
            yield from self.walk(child)

    # ==================== Mutation ====================

    def register(
        self,
        path: PathLike,
        raw: Mapping[str, Any],
        runtime: bool = True,
    ) -> ModuleNode:
        """Build a subtree for ``raw`` and attach it at ``path``.

        Args:
            path: Full path of the new module, at least one segment.
            raw: The module definition.
            runtime: Marks the nodes as dynamically registered.

        Returns:
            The new subtree's top node.

        Raises:
            ConfigurationError: If path is empty or the definition is malformed.
            PathNotFoundError: If the parent path does not exist.
        """
        parts = normalize_path(path)
        if not parts:
            raise ConfigurationError("cannot register the root module")
        parent = self.get(parts[:-1])
        check_raw_tree(raw, parts)
        if parts[-1] in parent.children:
            logger.warning("module '%s' replaced by a new registration", '.'.join(parts))
            self.unregister(parts)
        node = self._build(raw, parts, parent.node_id, runtime)
        parent.children[parts[-1]] = node.node_id
        return node

    def unregister(self, path: PathLike) -> list[ModuleNode]:
        """Detach the subtree at ``path`` and drop it from the arena.

        Returns:
            The removed nodes, depth-first.

        Raises:
            ConfigurationError: If path is the root.
            PathNotFoundError: If the module does not exist.
        """
        parts = normalize_path(path)
        if not parts:
            raise ConfigurationError("cannot unregister the root module")
        node = self.get(parts)
        removed = list(self.walk(node))
        del self.parent(node).children[node.key]
        for item in removed:
            del self._nodes[item.node_id]
        return removed

    def update(self, raw: Mapping[str, Any], path: PathLike = ()) -> None:
        """Replace the raw handlers of the node at ``path`` and its children.

        Node identity is kept. Nested ``modules`` entries are applied to
        existing children only; new modules need register().

        Raises:
            ConfigurationError: If the new definition is malformed.
            PathNotFoundError: If ``path`` does not exist.
        """
        node = self.get(path)
        check_raw_tree(raw, node.path)
        self._update(node, raw)

    def _update(self, node: ModuleNode, raw: Mapping[str, Any]) -> None:
        node.update(raw)
        for name, child_raw in (raw.get('modules') or {}).items():
            child_id = node.children.get(name)
            if child_id is None:
                logger.warning(
                    "hot update cannot add module '%s', register it instead",
                    '.'.join(node.path + (name,)),
                )
                continue
            self._update(self._nodes[child_id], child_raw)
