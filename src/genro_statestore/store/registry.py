# Copyright 2025 Softwell S.r.l. - Genropy Team
# SPDX-License-Identifier: Apache-2.0

"""Registry - qualified key to handler maps.

Mutations and actions map a qualified key to an ordered list of entries,
since several modules may install under the same key (fan-out). Getters map
a qualified key to exactly one entry.

Every entry remembers the id of the node that installed it, so removing a
module removes exactly what that module installed, whatever its namespace.
"""

from __future__ import annotations

from typing import Any, Callable, Iterable

from ..exceptions import DuplicateGetterError


class Entry:
    """An installed handler closure and the node that owns it."""

    __slots__ = ('handler', 'owner_id')

    def __init__(self, handler: Callable[..., Any], owner_id: int) -> None:
        self.handler = handler
        self.owner_id = owner_id

    def __repr__(self) -> str:
        return f"Entry(owner={self.owner_id})"

    def __call__(self, *args: Any) -> Any:
        return self.handler(*args)


class Registry:
    """The three routing maps used by commit, dispatch and getters."""

    __slots__ = ('mutations', 'actions', 'getters')

    def __init__(self) -> None:
        self.mutations: dict[str, list[Entry]] = {}
        self.actions: dict[str, list[Entry]] = {}
        self.getters: dict[str, Entry] = {}

    def __repr__(self) -> str:
        return (
            f"Registry(mutations={len(self.mutations)}, "
            f"actions={len(self.actions)}, getters={len(self.getters)})"
        )

    def add_mutation(self, key: str, handler: Callable[..., Any], owner_id: int) -> None:
        self.mutations.setdefault(key, []).append(Entry(handler, owner_id))

    def add_action(self, key: str, handler: Callable[..., Any], owner_id: int) -> None:
        self.actions.setdefault(key, []).append(Entry(handler, owner_id))

    def add_getter(self, key: str, handler: Callable[..., Any], owner_id: int) -> None:
        """Install a getter.

        Raises:
            DuplicateGetterError: If ``key`` is already taken.
        """
        if key in self.getters:
            raise DuplicateGetterError(f"duplicate getter key: {key}")
        self.getters[key] = Entry(handler, owner_id)

    def remove_owned(self, owner_ids: Iterable[int]) -> None:
        """Drop every entry installed by one of ``owner_ids``.

        Keys left without handlers are removed altogether.
        """
        owners = set(owner_ids)
        for table in (self.mutations, self.actions):
            for key in list(table):
                kept = [entry for entry in table[key] if entry.owner_id not in owners]
                if kept:
                    table[key] = kept
                else:
                    del table[key]
        for key in [k for k, entry in self.getters.items() if entry.owner_id in owners]:
            del self.getters[key]
