# Copyright 2025 Softwell S.r.l. - Genropy Team
# SPDX-License-Identifier: Apache-2.0

"""Namespace folding over module paths.

Walking from the root to the target node, each node adds ``key + '/'``
only when its own ``namespaced`` flag is set. A node without the flag adds
nothing, so its segment can be missing from the namespace of its
descendants:

    root -> a (namespaced) -> b (not namespaced)  =>  'a/'
    root -> a (not namespaced) -> b (namespaced)  =>  'b/'
"""

from __future__ import annotations

from .tree import ModuleTree, PathLike, normalize_path


def namespace_of(tree: ModuleTree, path: PathLike) -> str:
    """Return the folded namespace for the module at ``path``.

    Raises:
        PathNotFoundError: If the path does not exist.
    """
    parts = normalize_path(path)
    tree.get(parts)
    node = tree.root
    namespace = ''
    for key in parts:
        node = tree.node(node.children[key])
        if node.namespaced:
            namespace += key + '/'
    return namespace


def qualify(namespace: str, name: str) -> str:
    """Build the registry key for a local name."""
    return namespace + name
