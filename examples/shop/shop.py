# Copyright 2025 Softwell S.r.l. - Genropy Team
# SPDX-License-Identifier: Apache-2.0

"""Shop - Example store composed of namespaced modules.

A didactic example showing namespaces, root actions and a module
registered at runtime.
"""

from __future__ import annotations

import asyncio

from genro_statestore import Store


def add_item(state, item):
    state['items'].append(item)


async def checkout(context, payload):
    await asyncio.sleep(0)
    total = context.getters['total']
    context.commit('clear')
    context.commit('record', total, {'root': True})
    return total


def make_shop() -> Store:
    """Build the shop store.

    Example:
        >>> shop = make_shop()
        >>> shop.commit('cart/add', {'name': 'pen', 'price': 2})
        >>> shop.getters['cart/total']
        2
    """
    return Store({
        'state': lambda: {'sales': []},
        'mutations': {'record': lambda state, total: state['sales'].append(total)},
        'modules': {
            'cart': {
                'namespaced': True,
                'state': lambda: {'items': []},
                'mutations': {
                    'add': add_item,
                    'clear': lambda state, payload: state['items'].clear(),
                },
                'actions': {'checkout': checkout},
                'getters': {
                    'total': lambda state, *_: sum(item['price'] for item in state['items']),
                },
            },
        },
    })


async def main() -> None:
    shop = make_shop()
    shop.subscribe(lambda mutation, state: print('mutation', mutation['type']))
    shop.commit('cart/add', {'name': 'pen', 'price': 2})
    shop.commit('cart/add', {'name': 'book', 'price': 15})
    print('paid', await shop.dispatch('cart/checkout'))

    shop.register_module(['cart', 'coupons'], {
        'state': lambda: {'codes': []},
        'mutations': {'add_code': lambda state, code: state['codes'].append(code)},
    })
    shop.commit('cart/add_code', 'WELCOME')
    print(shop.state)
    shop.unregister_module(['cart', 'coupons'])


if __name__ == '__main__':
    asyncio.run(main())
