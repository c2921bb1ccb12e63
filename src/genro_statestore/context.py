# Copyright 2025 Softwell S.r.l. - Genropy Team
# SPDX-License-Identifier: Apache-2.0

"""Local contexts - the view a module's own handlers see.

Every installed module gets one LocalContext. What it exposes depends on
the module's namespace, resolved once at install time into a view:

- PassthroughView: namespace is ''. Getters are the store's global getters
  and commit/dispatch types are passed through untouched.
- NamespacedView(prefix): getters read ``prefix + name`` from the global
  getters at access time and commit/dispatch prefix the type, unless the
  caller escapes with ``{'root': True}``.

Example:
    >>> ctx = store.context_of('cart')
    >>> ctx.commit('add', item)            # commits 'cart/add'
    >>> ctx.commit('log', item, {'root': True})  # commits 'log'
    >>> ctx.getters['total']               # reads store.getters['cart/total']
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from typing import Any, TYPE_CHECKING

from .exceptions import PathNotFoundError

if TYPE_CHECKING:
    from .node import ModuleNode
    from .store import Store


def get_nested_state(state: Mapping[str, Any], path: tuple[str, ...]) -> Any:
    """Follow ``path`` inside the global state tree.

    Raises:
        PathNotFoundError: If a segment is missing.
    """
    current = state
    for key in path:
        try:
            current = current[key]
        except (KeyError, TypeError):
            raise PathNotFoundError(f"no state at '{'.'.join(path)}'") from None
    return current


def unify_object_style(
    type_: Any,
    payload: Any = None,
    options: Mapping[str, Any] | None = None,
) -> tuple[str, Any, Mapping[str, Any]]:
    """Accept both ``(type, payload, options)`` and ``({'type': ...}, options)``.

    In object style the whole mapping is the payload and the second
    argument is the options.
    """
    if isinstance(type_, Mapping) and 'type' in type_:
        options = payload
        payload = type_
        type_ = type_['type']
    if not isinstance(type_, str):
        raise TypeError(f"expects string as the type, but found {type(type_).__name__}")
    return type_, payload, options or {}


class NamespacedGetters(Mapping):
    """Read-through getters view bound to a namespace prefix.

    Reading ``view[name]`` evaluates ``store.getters[prefix + name]`` at
    access time, so nothing is snapshotted.
    """

    __slots__ = ('_store', '_prefix')

    def __init__(self, store: Store, prefix: str) -> None:
        self._store = store
        self._prefix = prefix

    def __repr__(self) -> str:
        return f"NamespacedGetters({self._prefix!r}, {list(self)})"

    def __getitem__(self, name: str) -> Any:
        return self._store.getters[self._prefix + name]

    def __getattr__(self, name: str) -> Any:
        if name.startswith('_'):
            raise AttributeError(name)
        try:
            return self[name]
        except KeyError:
            raise AttributeError(f"no getter '{self._prefix}{name}'") from None

    def __iter__(self) -> Iterator[str]:
        size = len(self._prefix)
        for key in self._store.getters:
            if key.startswith(self._prefix):
                yield key[size:]

    def __len__(self) -> int:
        return sum(1 for _ in self)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and (self._prefix + name) in self._store.getters


class PassthroughView:
    """View of a module whose namespace is empty."""

    __slots__ = ()

    prefix = ''

    def __repr__(self) -> str:
        return "PassthroughView()"

    def make_getters(self, store: Store) -> Mapping[str, Any]:
        return store.getters

    def qualify(self, type_: str, options: Mapping[str, Any]) -> str:
        return type_


class NamespacedView:
    """View of a module living under a non-empty namespace."""

    __slots__ = ('prefix',)

    def __init__(self, prefix: str) -> None:
        self.prefix = prefix

    def __repr__(self) -> str:
        return f"NamespacedView({self.prefix!r})"

    def make_getters(self, store: Store) -> Mapping[str, Any]:
        return NamespacedGetters(store, self.prefix)

    def qualify(self, type_: str, options: Mapping[str, Any]) -> str:
        if options.get('root'):
            return type_
        return self.prefix + type_


LocalView = PassthroughView | NamespacedView


def make_view(namespace: str) -> LocalView:
    return NamespacedView(namespace) if namespace else PassthroughView()


class LocalContext:
    """The state/getters/commit/dispatch bundle handed to module handlers.

    Attributes:
        path: Path of the owning module.
        view: PassthroughView or NamespacedView.
        getters: Local getters, fixed at install time.
    """

    __slots__ = ('_store', 'path', 'view', 'getters')

    def __init__(self, store: Store, node: ModuleNode) -> None:
        self._store = store
        self.path = node.path
        self.view = make_view(node.namespace or '')
        self.getters = self.view.make_getters(store)

    def __repr__(self) -> str:
        return f"LocalContext({'.'.join(self.path)!r}, {self.view!r})"

    @property
    def namespace(self) -> str:
        return self.view.prefix

    @property
    def state(self) -> Any:
        """The module's slice of the global state, looked up on each access."""
        return get_nested_state(self._store.state, self.path)

    @property
    def root_state(self) -> dict[str, Any]:
        return self._store.state

    @property
    def root_getters(self) -> Mapping[str, Any]:
        return self._store.getters

    def commit(
        self,
        type_: Any,
        payload: Any = None,
        options: Mapping[str, Any] | None = None,
    ) -> None:
        """Commit a mutation, qualified by this module's namespace.

        Args:
            type_: Local mutation name, or an object-style mapping.
            payload: Mutation payload.
            options: ``{'root': True}`` commits ``type_`` unqualified.
        """
        type_, payload, options = unify_object_style(type_, payload, options)
        self._store.commit(self.view.qualify(type_, options), payload, options)

    def dispatch(
        self,
        type_: Any,
        payload: Any = None,
        options: Mapping[str, Any] | None = None,
    ) -> Any:
        """Dispatch an action, qualified by this module's namespace.

        Returns:
            Whatever the store's dispatch returns.
        """
        type_, payload, options = unify_object_style(type_, payload, options)
        return self._store.dispatch(self.view.qualify(type_, options), payload, options)
