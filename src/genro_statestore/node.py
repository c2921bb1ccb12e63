# Copyright 2025 Softwell S.r.l. - Genropy Team
# SPDX-License-Identifier: Apache-2.0

"""Module tree node and action spec classes."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Callable, Iterator, TYPE_CHECKING

from .exceptions import ConfigurationError

if TYPE_CHECKING:
    from .context import LocalContext


MODULE_KEYS = ('state', 'mutations', 'actions', 'getters', 'namespaced', 'modules')


class DirectAction:
    """Action registered under the module's namespace."""

    __slots__ = ('handler',)

    root = False

    def __init__(self, handler: Callable[..., Any]) -> None:
        self.handler = handler

    def __repr__(self) -> str:
        return f"DirectAction({self.handler!r})"


class RootAction:
    """Action registered under its bare name, escaping the namespace.

    The handler still receives the local context of the module that
    declared it.
    """

    __slots__ = ('handler',)

    root = True

    def __init__(self, handler: Callable[..., Any]) -> None:
        self.handler = handler

    def __repr__(self) -> str:
        return f"RootAction({self.handler!r})"


ActionSpec = DirectAction | RootAction


def action_spec(name: str, entry: Any) -> ActionSpec:
    """Turn a raw ``actions`` entry into an ActionSpec.

    Args:
        name: The action name, used in error messages.
        entry: A callable, or a ``{'root': bool, 'handler': callable}`` record.

    Returns:
        DirectAction or RootAction.

    Raises:
        ConfigurationError: If the entry has neither shape.
    """
    if callable(entry):
        return DirectAction(entry)
    if isinstance(entry, Mapping) and callable(entry.get('handler')):
        if entry.get('root'):
            return RootAction(entry['handler'])
        return DirectAction(entry['handler'])
    raise ConfigurationError(
        f"actions should be function or object with 'handler' function "
        f"but 'actions.{name}' is {entry!r}"
    )


def check_raw_module(raw: Any, path: tuple[str, ...]) -> None:
    """Validate the shape of a single module definition (not its children).

    Raises:
        ConfigurationError: On any malformed entry.
    """
    where = '.'.join(path) or '<root>'
    if not isinstance(raw, Mapping):
        raise ConfigurationError(
            f"module '{where}' should be a mapping, not {type(raw).__name__}"
        )
    unknown = set(raw) - set(MODULE_KEYS)
    if unknown:
        raise ConfigurationError(
            f"module '{where}' has unknown keys: {', '.join(sorted(unknown))}"
        )
    state = raw.get('state')
    if state is not None and not callable(state) and not isinstance(state, Mapping):
        raise ConfigurationError(
            f"state of module '{where}' should be a factory or a mapping"
        )
    for section in ('mutations', 'getters'):
        entries = raw.get(section) or {}
        if not isinstance(entries, Mapping):
            raise ConfigurationError(f"{section} of module '{where}' should be a mapping")
        for name, handler in entries.items():
            if not callable(handler):
                raise ConfigurationError(
                    f"{section} should be function but "
                    f"'{section}.{name}' in module '{where}' is {handler!r}"
                )
    actions = raw.get('actions') or {}
    if not isinstance(actions, Mapping):
        raise ConfigurationError(f"actions of module '{where}' should be a mapping")
    for name, entry in actions.items():
        action_spec(name, entry)
    modules = raw.get('modules') or {}
    if not isinstance(modules, Mapping):
        raise ConfigurationError(f"modules of module '{where}' should be a mapping")


class ModuleNode:
    """A node in a ModuleTree.

    Each node has:
    - node_id: Stable identifier inside the owning tree's arena
    - path: Tuple of segments from the root (empty for the root)
    - raw: The module definition this node wraps
    - namespaced: The node's own ``namespaced`` flag
    - namespace: Folded namespace, set once when the node is installed
    - children: Mapping child name -> child node_id
    - parent_id: node_id of the parent, None for the root
    - runtime: True if the node was added by register_module

    Example:
        >>> node = ModuleNode(0, ('cart',), {'namespaced': True})
        >>> node.key
        'cart'
    """

    __slots__ = (
        'node_id', 'path', 'raw', 'namespaced', 'namespace',
        'children', 'parent_id', 'runtime', 'context',
    )

    def __init__(
        self,
        node_id: int,
        path: tuple[str, ...],
        raw: Mapping[str, Any],
        parent_id: int | None = None,
        runtime: bool = False,
    ) -> None:
        self.node_id = node_id
        self.path = path
        self.raw = raw
        self.namespaced = bool(raw.get('namespaced', False))
        self.namespace: str | None = None
        self.children: dict[str, int] = {}
        self.parent_id = parent_id
        self.runtime = runtime
        self.context: LocalContext | None = None

    def __repr__(self) -> str:
        return f"ModuleNode({'.'.join(self.path)!r}, namespaced={self.namespaced})"

    @property
    def key(self) -> str:
        """Last path segment, empty string for the root."""
        return self.path[-1] if self.path else ''

    @property
    def is_root(self) -> bool:
        return not self.path

    def initial_state(self) -> dict[str, Any]:
        """Produce this module's own state.

        A factory is called every time; a mapping is used as-is.
        """
        state = self.raw.get('state')
        if state is None:
            return {}
        if callable(state):
            return state()
        return state

    def iter_mutations(self) -> Iterator[tuple[str, Callable[..., Any]]]:
        yield from (self.raw.get('mutations') or {}).items()

    def iter_actions(self) -> Iterator[tuple[str, ActionSpec]]:
        for name, entry in (self.raw.get('actions') or {}).items():
            yield name, action_spec(name, entry)

    def iter_getters(self) -> Iterator[tuple[str, Callable[..., Any]]]:
        yield from (self.raw.get('getters') or {}).items()

    def update(self, raw: Mapping[str, Any]) -> None:
        """Replace the handler sections with those found in ``raw``.

        Only ``mutations``, ``actions`` and ``getters`` present in ``raw``
        are replaced; state and ``namespaced`` are left alone.
        """
        new_raw = dict(self.raw)
        for section in ('mutations', 'actions', 'getters'):
            if section in raw:
                new_raw[section] = raw[section]
        self.raw = new_raw
