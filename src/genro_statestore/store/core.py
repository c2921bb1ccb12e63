# Copyright 2025 Softwell S.r.l. - Genropy Team
# SPDX-License-Identifier: Apache-2.0

"""Store - module composition and routing engine.

This module provides the Store class, which assembles a tree of module
definitions into one state container and routes ``commit``, ``dispatch``
and getter lookups to the handlers of the right modules.

Key Features:
    - **Module tree**: nested ``modules`` definitions, each with its own
      state slice, mutations, actions and getters
    - **Namespaces**: modules flagged ``namespaced`` prefix their keys,
      folded along the path (see namespace.namespace_of)
    - **Local contexts**: handlers see their own state and getters, and
      commit/dispatch relative to their namespace
    - **Fan-out**: several modules may handle the same mutation or action
    - **Dynamic modules**: register_module / unregister_module at runtime
    - **Subscriptions**: listeners on mutations and actions

Module definition::

    {
        'state': lambda: {'count': 0},
        'mutations': {'increment': lambda state, payload: ...},
        'actions': {
            'load': lambda context, payload: ...,
            'ping': {'root': True, 'handler': lambda context, payload: ...},
        },
        'getters': {'double': lambda state, getters, root_state, root_getters: ...},
        'namespaced': True,
        'modules': {'child': {...}},
    }

Example:
    Basic usage::

        store = Store({
            'state': lambda: {'count': 0},
            'mutations': {
                'increment': lambda state, n: state.update(count=state['count'] + n),
            },
            'getters': {'double': lambda state, *_: state['count'] * 2},
        })
        store.commit('increment', 2)
        store.getters['double']  # 4

    Async actions::

        async def fetch(context, item_id):
            data = await api.get(item_id)
            context.commit('set', data)

        store.register_module('items', {
            'namespaced': True,
            'state': dict,
            'mutations': {'set': lambda state, data: state.update(data)},
            'actions': {'fetch': fetch},
        })
        await store.dispatch('items/fetch', 42)
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from typing import Any, Awaitable, Callable

from ..context import LocalContext, get_nested_state, unify_object_style
from ..exceptions import (
    ConfigurationError,
    DuplicateGetterError,
    PathNotFoundError,
    UnknownActionError,
    UnknownMutationError,
)
from ..namespace import namespace_of, qualify
from ..node import ModuleNode
from ..tree import ModuleTree, PathLike, check_raw_tree, normalize_path
from .registry import Registry
from .subscription import SubscriptionMixin

logger = logging.getLogger(__name__)


async def _resolved(value: Any) -> Any:
    return value


class GettersView(Mapping):
    """Global getters: ``view[key]`` evaluates the getter registered for key.

    Values are computed on every read; caching belongs to whatever reactive
    layer sits on top of the store.
    """

    __slots__ = ('_store',)

    def __init__(self, store: Store) -> None:
        self._store = store

    def __repr__(self) -> str:
        return f"GettersView({list(self)})"

    def __getitem__(self, key: str) -> Any:
        entry = self._store._registry.getters[key]
        return entry()

    def __getattr__(self, name: str) -> Any:
        if name.startswith('_'):
            raise AttributeError(name)
        try:
            return self[name]
        except KeyError:
            raise AttributeError(f"no getter '{name}'") from None

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._store._registry.getters))

    def __len__(self) -> int:
        return len(self._store._registry.getters)

    def __contains__(self, key: object) -> bool:
        return key in self._store._registry.getters


class Store(SubscriptionMixin):
    """A centralized state container assembled from module definitions.

    Store provides:
    - state: The global state tree (nested dicts mirroring module paths)
    - getters: Read-only mapping of qualified getter keys to values
    - commit(type, payload): Run mutations synchronously
    - dispatch(type, payload): Run actions, possibly asynchronous
    - register_module / unregister_module / has_module: Dynamic modules
    - subscribe / subscribe_action: Listeners
    - hot_update / replace_state: Reload handlers, swap the state tree

    Example:
        >>> store = Store({'modules': {'cart': {'namespaced': True}}})
        >>> store.has_module('cart')
        True
    """

    __slots__ = (
        '_tree', '_registry', '_state', '_getters',
        '_subscribers', '_action_subscribers',
        '_namespace_map', '_raise_on_error', '_committing', '_pending',
    )

    def __init__(
        self,
        options: Mapping[str, Any] | None = None,
        raise_on_error: bool = True,
    ) -> None:
        """Initialize a Store.

        Args:
            options: The root module definition (same shape as any module).
            raise_on_error: If True (default), committing or dispatching an
                unknown type raises UnknownMutationError/UnknownActionError.
                If False, the call is logged and ignored.

        Raises:
            ConfigurationError: If a definition is malformed.
            DuplicateGetterError: If two modules install the same getter key.
        """
        self._tree = ModuleTree(options)
        self._registry = Registry()
        self._state: dict[str, Any] = {}
        self._getters = GettersView(self)
        self._subscribers: list[Callable[..., Any]] = []
        self._action_subscribers: list[Mapping[str, Callable[..., Any]]] = []
        self._namespace_map: dict[str, int] = {}
        self._raise_on_error = raise_on_error
        self._committing = False
        self._pending: set[asyncio.Future[Any]] = set()

        self._install(self._tree.root)

    def __repr__(self) -> str:
        return f"Store({len(self._tree)} modules, {self._registry!r})"

    # ==================== Properties ====================

    @property
    def state(self) -> dict[str, Any]:
        """The global state tree. Use replace_state() to swap it."""
        return self._state

    @property
    def getters(self) -> GettersView:
        return self._getters

    @property
    def committing(self) -> bool:
        """True while a mutation (or a state replacement) is running."""
        return self._committing

    @property
    def tree(self) -> ModuleTree:
        return self._tree

    @property
    def registry(self) -> Registry:
        return self._registry

    # ==================== Installation ====================

    @contextmanager
    def _with_commit(self) -> Iterator[None]:
        committing = self._committing
        self._committing = True
        try:
            yield
        finally:
            self._committing = committing

    def _install(
        self,
        top: ModuleNode,
        preserve_state: bool = False,
        hot: bool = False,
    ) -> None:
        """Install ``top`` and its descendants, depth-first.

        Args:
            top: First node of the subtree.
            preserve_state: Keep a state slice that already exists.
            hot: Reinstall handlers only, leaving the state untouched.
        """
        for node in self._tree.walk(top):
            node.namespace = namespace_of(self._tree, node.path)
            if node.namespaced:
                if node.namespace in self._namespace_map:
                    logger.warning(
                        "duplicate namespace %s for the namespaced module %s",
                        node.namespace, '.'.join(node.path),
                    )
                self._namespace_map[node.namespace] = node.node_id
            if not hot:
                self._install_state(node, preserve_state)
            node.context = LocalContext(self, node)
            self._install_handlers(node)

    def _install_state(self, node: ModuleNode, preserve_state: bool) -> None:
        if node.is_root:
            with self._with_commit():
                self._state = node.initial_state()
            return
        parent_state = get_nested_state(self._state, node.path[:-1])
        if node.key in parent_state:
            if preserve_state:
                return
            logger.warning(
                "state field '%s' is overridden by a module with the same name at '%s'",
                node.key, '.'.join(node.path),
            )
        with self._with_commit():
            parent_state[node.key] = node.initial_state()

    def _install_handlers(self, node: ModuleNode) -> None:
        context = node.context
        namespace = node.namespace or ''
        for name, handler in node.iter_mutations():
            self._registry.add_mutation(
                qualify(namespace, name), self._wrap_mutation(handler, context), node.node_id
            )
        for name, spec in node.iter_actions():
            key = name if spec.root else qualify(namespace, name)
            self._registry.add_action(
                key, self._wrap_action(spec.handler, context), node.node_id
            )
        for name, handler in node.iter_getters():
            self._registry.add_getter(
                qualify(namespace, name), self._wrap_getter(handler, context), node.node_id
            )

    def _wrap_mutation(
        self, handler: Callable[..., Any], context: LocalContext
    ) -> Callable[[Any], None]:
        def wrapped_mutation(payload: Any) -> None:
            handler(context.state, payload)
        return wrapped_mutation

    def _wrap_action(
        self, handler: Callable[..., Any], context: LocalContext
    ) -> Callable[[Any], Any]:
        def wrapped_action(payload: Any) -> Any:
            return handler(context, payload)
        return wrapped_action

    def _wrap_getter(
        self, handler: Callable[..., Any], context: LocalContext
    ) -> Callable[[], Any]:
        def wrapped_getter() -> Any:
            return handler(context.state, context.getters, self._state, self._getters)
        return wrapped_getter

    def _forget(self, nodes: list[ModuleNode]) -> None:
        """Remove registry and namespace entries installed by ``nodes``."""
        ids = {node.node_id for node in nodes}
        self._registry.remove_owned(ids)
        for namespace in [ns for ns, nid in self._namespace_map.items() if nid in ids]:
            del self._namespace_map[namespace]

    def _check_getter_keys(
        self,
        parts: tuple[str, ...],
        raw: Mapping[str, Any],
        existing: ModuleNode | None,
    ) -> None:
        """Fail before touching anything if ``raw`` would clash on a getter key.

        Keys owned by ``existing``, the module about to be replaced, are free.

        Raises:
            DuplicateGetterError: On the first clashing key.
        """
        replaced = set()
        if existing is not None:
            replaced = {node.node_id for node in self._tree.walk(existing)}
        taken = {
            key for key, entry in self._registry.getters.items()
            if entry.owner_id not in replaced
        }
        namespace = namespace_of(self._tree, parts[:-1])
        self._collect_getter_keys(parts[-1], raw, namespace, taken)

    def _collect_getter_keys(
        self,
        key: str,
        raw: Mapping[str, Any],
        namespace: str,
        taken: set[str],
    ) -> None:
        if raw.get('namespaced'):
            namespace += key + '/'
        for name in raw.get('getters') or {}:
            qualified = qualify(namespace, name)
            if qualified in taken:
                raise DuplicateGetterError(f"duplicate getter key: {qualified}")
            taken.add(qualified)
        for child_key, child_raw in (raw.get('modules') or {}).items():
            self._collect_getter_keys(child_key, child_raw, namespace, taken)

    def _unknown(self, error_class: type[Exception], message: str) -> None:
        if self._raise_on_error:
            raise error_class(message)
        logger.error(message)

    # ==================== Commit / Dispatch ====================

    def commit(
        self,
        type_: Any,
        payload: Any = None,
        options: Mapping[str, Any] | None = None,
    ) -> None:
        """Run every mutation handler registered under ``type_``.

        Handlers run synchronously, in registration order. Subscribers are
        notified once all of them returned. An exception raised by a handler
        aborts the commit and propagates.

        Args:
            type_: Qualified mutation type, or an object-style mapping
                ``{'type': ..., **payload}``.
            payload: Mutation payload.
            options: Accepted for symmetry with local contexts.

        Raises:
            UnknownMutationError: If nothing handles ``type_`` and
                raise_on_error is set.

        Example:
            >>> store.commit('cart/add', {'id': 1})
            >>> store.commit({'type': 'cart/add', 'id': 1})
        """
        type_, payload, options = unify_object_style(type_, payload, options)
        entries = self._registry.mutations.get(type_)
        if not entries:
            self._unknown(UnknownMutationError, f"unknown mutation type: {type_}")
            return
        mutation = {'type': type_, 'payload': payload}
        with self._with_commit():
            for entry in entries:
                entry(payload)
        self._notify_mutation(mutation, self._state)

    def dispatch(
        self,
        type_: Any,
        payload: Any = None,
        options: Mapping[str, Any] | None = None,
    ) -> Any:
        """Run every action handler registered under ``type_``.

        The handlers are all called before anything is awaited, so async
        handlers run concurrently once the outcome is awaited.

        Returns:
            - One handler, synchronous result: the result itself.
            - Several handlers, all synchronous: the list of results.
            - Any awaitable result: an awaitable. With one handler it
              resolves to that handler's result; with several it resolves to
              the list of results once all completed, and fails as soon as
              the first of them fails.
            - Unknown type with raise_on_error off: None.

        Raises:
            UnknownActionError: If nothing handles ``type_`` and
                raise_on_error is set.

        Example:
            >>> await store.dispatch('cart/checkout', {'card': card})
        """
        type_, payload, options = unify_object_style(type_, payload, options)
        entries = self._registry.actions.get(type_)
        if not entries:
            self._unknown(UnknownActionError, f"unknown action type: {type_}")
            return None
        action = {'type': type_, 'payload': payload}
        self._notify_action('before', action, self._state)
        outcomes: list[Any] = []
        try:
            for entry in entries:
                outcomes.append(entry(payload))
        except Exception as exc:
            self._release(outcomes)
            self._notify_action('error', action, self._state, exc)
            raise
        if any(inspect.isawaitable(outcome) for outcome in outcomes):
            return self._settle(action, outcomes)
        self._notify_action('after', action, self._state)
        return outcomes[0] if len(outcomes) == 1 else outcomes

    def _release(self, outcomes: list[Any]) -> None:
        """Let the awaitables of an aborted dispatch run on their own.

        With a running loop they are scheduled as tasks; without one,
        coroutines that can never run are closed.
        """
        awaitables = [outcome for outcome in outcomes if inspect.isawaitable(outcome)]
        if not awaitables:
            return
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            for outcome in awaitables:
                if inspect.iscoroutine(outcome):
                    outcome.close()
            return
        for outcome in awaitables:
            future = asyncio.ensure_future(outcome)
            self._pending.add(future)
            future.add_done_callback(self._pending_done)

    def _pending_done(self, future: asyncio.Future[Any]) -> None:
        self._pending.discard(future)
        if not future.cancelled() and future.exception() is not None:
            logger.error("action of an aborted dispatch failed", exc_info=future.exception())

    async def _settle(self, action: dict[str, Any], outcomes: list[Any]) -> Any:
        """Await the outcomes of a dispatch and notify action subscribers."""
        try:
            if len(outcomes) == 1:
                result = await outcomes[0]
            else:
                awaitables: list[Awaitable[Any]] = [
                    outcome if inspect.isawaitable(outcome) else _resolved(outcome)
                    for outcome in outcomes
                ]
                result = await asyncio.gather(*awaitables)
        except Exception as exc:
            self._notify_action('error', action, self._state, exc)
            raise
        self._notify_action('after', action, self._state)
        return result

    # ==================== Dynamic Modules ====================

    def register_module(
        self,
        path: PathLike,
        raw: Mapping[str, Any],
        preserve_state: bool = False,
    ) -> ModuleNode:
        """Add a module at runtime.

        Args:
            path: Full path of the module ('a.c' or ['a', 'c']).
            raw: The module definition.
            preserve_state: If True and state already exists at ``path``,
                keep it and discard what the definition's factory builds.

        Returns:
            The new module's node.

        Raises:
            ConfigurationError: Empty path or malformed definition.
            PathNotFoundError: If the parent module does not exist.
            DuplicateGetterError: If a getter key is already taken. The
                registration is rolled back.
        """
        parts = normalize_path(path)
        if not parts:
            raise ConfigurationError("cannot register the root module")
        self._tree.get(parts[:-1])
        check_raw_tree(raw, parts)
        existing = self._tree.find(parts)
        self._check_getter_keys(parts, raw, existing)
        parent_state = get_nested_state(self._state, parts[:-1])
        had_state = parts[-1] in parent_state
        old_state = parent_state.get(parts[-1])
        snapshot = None
        if existing is not None:
            snapshot = self._tree.snapshot(existing)
            self._forget(list(self._tree.walk(existing)))

        node = self._tree.register(parts, raw)
        try:
            self._install(node, preserve_state=preserve_state)
        except Exception:
            self._forget(self._tree.unregister(parts))
            with self._with_commit():
                if had_state:
                    parent_state[parts[-1]] = old_state
                else:
                    parent_state.pop(parts[-1], None)
            if snapshot is not None:
                restored = self._tree.register(parts, snapshot, runtime=existing.runtime)
                self._install(restored, hot=True)
            raise
        logger.debug("registered module '%s' (namespace %r)", '.'.join(parts), node.namespace)
        return node

    def unregister_module(self, path: PathLike) -> None:
        """Remove a module, its descendants, their handlers and state.

        Raises:
            PathNotFoundError: If the module does not exist.
        """
        parts = normalize_path(path)
        removed = self._tree.unregister(parts)
        if not removed[0].runtime:
            logger.warning(
                "module '%s' was declared at construction, not registered at runtime",
                '.'.join(parts),
            )
        self._forget(removed)
        try:
            parent_state = get_nested_state(self._state, parts[:-1])
        except PathNotFoundError:
            parent_state = {}
        with self._with_commit():
            parent_state.pop(parts[-1], None)
        logger.debug("unregistered module '%s'", '.'.join(parts))

    def has_module(self, path: PathLike) -> bool:
        """True if a module is registered at ``path``."""
        return self._tree.has(path)

    def module_by_namespace(self, namespace: str) -> ModuleNode | None:
        """Return the namespaced module owning ``namespace`` (e.g. 'cart/')."""
        node_id = self._namespace_map.get(namespace)
        return None if node_id is None else self._tree.node(node_id)

    def namespace_of(self, path: PathLike) -> str:
        """Return the folded namespace of the module at ``path``."""
        return namespace_of(self._tree, path)

    def context_of(self, path: PathLike) -> LocalContext:
        """Return the local context of the module at ``path``."""
        return self._tree.get(path).context

    # ==================== Reload ====================

    def hot_update(self, raw: Mapping[str, Any]) -> None:
        """Swap handler code in place and rebuild every registry.

        ``raw`` has the shape of a root module definition; only
        ``mutations``, ``actions``, ``getters`` and nested ``modules`` are
        used. State and registered modules are kept.

        Handlers are installed into a fresh registry that replaces the
        current one only on success; on failure the previous handlers and
        definitions stay in place.

        Raises:
            ConfigurationError: If the new definitions are malformed.
            DuplicateGetterError: If the new getters clash.
        """
        previous_raws = {node.node_id: node.raw for node in self._tree.walk()}
        previous_contexts = {node.node_id: node.context for node in self._tree.walk()}
        previous = (self._registry, self._namespace_map)
        self._tree.update(raw)
        self._registry = Registry()
        self._namespace_map = {}
        try:
            self._install(self._tree.root, hot=True)
        except Exception:
            for node in self._tree.walk():
                node.raw = previous_raws[node.node_id]
                node.context = previous_contexts[node.node_id]
            self._registry, self._namespace_map = previous
            raise

    def replace_state(self, state: dict[str, Any]) -> None:
        """Replace the whole state tree.

        Local contexts resolve their slice on each access, so they follow
        the new tree immediately.
        """
        with self._with_commit():
            self._state = state
