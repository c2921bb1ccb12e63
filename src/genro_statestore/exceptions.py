# Copyright 2025 Softwell S.r.l. - Genropy Team
# SPDX-License-Identifier: Apache-2.0

"""StateStore exceptions."""

from __future__ import annotations


class StateStoreError(Exception):
    """Base exception for StateStore errors."""

    pass


class ConfigurationError(StateStoreError):
    """Raised when a module definition is malformed."""

    pass


class PathNotFoundError(StateStoreError, KeyError):
    """Raised when a module path does not exist in the tree."""

    def __str__(self) -> str:
        # KeyError quotes its message; keep it readable
        return str(self.args[0]) if self.args else ''


class UnknownMutationError(StateStoreError):
    """Raised when committing a mutation type nobody registered."""

    pass


class UnknownActionError(StateStoreError):
    """Raised when dispatching an action type nobody registered."""

    pass


class DuplicateGetterError(StateStoreError):
    """Raised when two modules register the same qualified getter key."""

    pass
