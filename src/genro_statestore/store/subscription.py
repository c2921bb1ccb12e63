# Copyright 2025 Softwell S.r.l. - Genropy Team
# SPDX-License-Identifier: Apache-2.0

"""Subscription system for Store.

Two kinds of listeners are supported:

- Mutation subscribers, called after every commit as
  ``callback(mutation, state)`` where ``mutation`` is
  ``{'type': ..., 'payload': ...}``.
- Action subscribers, called around every dispatch. A plain callable is
  a ``before`` listener; a mapping may provide ``before``, ``after`` and
  ``error`` callables:

    - before(action, state)
    - after(action, state)        once the outcome has settled
    - error(action, state, exc)   if the outcome failed

Every ``subscribe*`` call returns a function that removes the listener.

Example:
    >>> log = []
    >>> unsubscribe = store.subscribe(lambda m, s: log.append(m['type']))
    >>> store.commit('increment')
    >>> unsubscribe()
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Callable

SubscriberCallback = Callable[..., Any]


def _add_subscriber(
    subscribers: list[Any],
    callback: Any,
    prepend: bool,
) -> Callable[[], None]:
    if callback not in subscribers:
        if prepend:
            subscribers.insert(0, callback)
        else:
            subscribers.append(callback)

    def unsubscribe() -> None:
        if callback in subscribers:
            subscribers.remove(callback)

    return unsubscribe


class SubscriptionMixin:
    """Mixin providing mutation and action subscriptions."""

    __slots__ = ()

    _subscribers: list[SubscriberCallback]
    _action_subscribers: list[Mapping[str, SubscriberCallback]]

    def subscribe(
        self,
        callback: SubscriberCallback,
        prepend: bool = False,
    ) -> Callable[[], None]:
        """Listen to committed mutations.

        Args:
            callback: Called as ``callback(mutation, state)``.
            prepend: If True, run before the already registered listeners.

        Returns:
            A function that removes the listener.
        """
        return _add_subscriber(self._subscribers, callback, prepend)

    def subscribe_action(
        self,
        callback: SubscriberCallback | Mapping[str, SubscriberCallback],
        prepend: bool = False,
    ) -> Callable[[], None]:
        """Listen to dispatched actions.

        Args:
            callback: A callable (``before`` listener) or a mapping with
                any of ``before``, ``after``, ``error``.
            prepend: If True, run before the already registered listeners.

        Returns:
            A function that removes the listener.
        """
        if callable(callback):
            callback = {'before': callback}
        elif not isinstance(callback, Mapping):
            raise TypeError("action subscriber should be a callable or a mapping")
        return _add_subscriber(self._action_subscribers, callback, prepend)

    def _notify_mutation(self, mutation: dict[str, Any], state: Any) -> None:
        # copy: listeners may unsubscribe while being notified
        for callback in list(self._subscribers):
            callback(mutation, state)

    def _notify_action(
        self,
        phase: str,
        action: dict[str, Any],
        state: Any,
        error: BaseException | None = None,
    ) -> None:
        for subscriber in list(self._action_subscribers):
            callback = subscriber.get(phase)
            if callback is None:
                continue
            if phase == 'error':
                callback(action, state, error)
            else:
                callback(action, state)
