# Copyright 2025 Softwell S.r.l. - Genropy Team
# SPDX-License-Identifier: Apache-2.0

"""Genro-StateStore - Modular, namespaced state container.

A lightweight, zero-dependency library that composes independently
authored modules (state, mutations, actions, getters) into one store,
with hierarchical namespaces and runtime module registration.
"""

__version__ = "0.1.0"

from .context import LocalContext, NamespacedView, PassthroughView
from .exceptions import (
    ConfigurationError,
    DuplicateGetterError,
    PathNotFoundError,
    StateStoreError,
    UnknownActionError,
    UnknownMutationError,
)
from .namespace import namespace_of
from .node import DirectAction, ModuleNode, RootAction
from .store import GettersView, Registry, Store
from .tree import ModuleTree

__all__ = [
    # Core classes
    "Store",
    "GettersView",
    "Registry",
    # Module tree
    "ModuleTree",
    "ModuleNode",
    "DirectAction",
    "RootAction",
    "namespace_of",
    # Local contexts
    "LocalContext",
    "NamespacedView",
    "PassthroughView",
    # Exceptions
    "StateStoreError",
    "ConfigurationError",
    "PathNotFoundError",
    "UnknownMutationError",
    "UnknownActionError",
    "DuplicateGetterError",
]
