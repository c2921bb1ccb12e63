# Copyright 2025 Softwell S.r.l. - Genropy Team
# SPDX-License-Identifier: Apache-2.0

"""Store package - module composition and routing engine.

The package is organized into:
- core: Main Store class with install, commit, dispatch and dynamic modules
- registry: Qualified key to handler maps
- subscription: Mutation and action listeners

Example:
    >>> from genro_statestore import Store
    >>> store = Store({'state': lambda: {'count': 0}})
    >>> store.state['count']
    0
"""

from .core import GettersView, Store
from .registry import Registry

__all__ = ["GettersView", "Registry", "Store"]
