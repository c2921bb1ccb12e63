# Copyright 2025 Softwell S.r.l. - Genropy Team
# SPDX-License-Identifier: Apache-2.0

"""Tests for ModuleNode, ModuleTree and namespace folding."""

import pytest

from genro_statestore import (
    ConfigurationError,
    DirectAction,
    ModuleNode,
    ModuleTree,
    PathNotFoundError,
    RootAction,
    namespace_of,
)
from genro_statestore.node import action_spec
from genro_statestore.tree import normalize_path


def noop(*args):
    pass


class TestModuleNode:
    """Tests for ModuleNode."""

    def test_create_node(self):
        """Test node attributes from a raw definition."""
        node = ModuleNode(3, ('cart',), {'namespaced': True})
        assert node.node_id == 3
        assert node.key == 'cart'
        assert node.namespaced is True
        assert node.namespace is None
        assert node.children == {}
        assert node.parent_id is None

    def test_root_node(self):
        """Test root has empty key."""
        node = ModuleNode(0, (), {})
        assert node.is_root
        assert node.key == ''
        assert node.namespaced is False

    def test_initial_state_factory_called_each_time(self):
        """Test a factory state gives a fresh dict on each call."""
        node = ModuleNode(0, ('a',), {'state': lambda: {'n': 0}})
        first = node.initial_state()
        second = node.initial_state()
        assert first == {'n': 0}
        assert first is not second

    def test_initial_state_mapping_used_as_is(self):
        """Test a mapping state is used directly."""
        state = {'n': 1}
        node = ModuleNode(0, ('a',), {'state': state})
        assert node.initial_state() is state

    def test_initial_state_default(self):
        """Test missing state gives an empty dict."""
        assert ModuleNode(0, ('a',), {}).initial_state() == {}

    def test_update_replaces_handlers_only(self):
        """Test update keeps state and namespaced flag."""
        factory = lambda: {}
        node = ModuleNode(0, ('a',), {'state': factory, 'namespaced': True,
                                     'mutations': {'x': noop}})
        new_handler = lambda state, payload: None
        node.update({'mutations': {'y': new_handler}, 'namespaced': False})
        assert node.raw['mutations'] == {'y': new_handler}
        assert node.raw['state'] is factory
        assert node.namespaced is True


class TestActionSpec:
    """Tests for action entry shapes."""

    def test_function_is_direct(self):
        """Test a plain function becomes DirectAction."""
        spec = action_spec('load', noop)
        assert isinstance(spec, DirectAction)
        assert spec.root is False
        assert spec.handler is noop

    def test_root_record_is_root_action(self):
        """Test {'root': True, 'handler': fn} becomes RootAction."""
        spec = action_spec('load', {'root': True, 'handler': noop})
        assert isinstance(spec, RootAction)
        assert spec.root is True
        assert spec.handler is noop

    def test_record_without_root_is_direct(self):
        """Test a record without root flag stays namespaced."""
        assert isinstance(action_spec('load', {'handler': noop}), DirectAction)

    def test_invalid_entry_raises(self):
        """Test a record without callable handler raises."""
        with pytest.raises(ConfigurationError, match="actions.load"):
            action_spec('load', {'root': True, 'handler': 'nope'})


class TestPaths:
    """Tests for path normalization."""

    def test_dotted_string(self):
        assert normalize_path('a.b.c') == ('a', 'b', 'c')

    def test_sequence(self):
        assert normalize_path(['a', 'b']) == ('a', 'b')

    def test_root(self):
        assert normalize_path('') == ()
        assert normalize_path([]) == ()

    def test_empty_segment_raises(self):
        with pytest.raises(ConfigurationError):
            normalize_path('a..b')


class TestModuleTreeBuild:
    """Tests for building a ModuleTree."""

    def test_empty_tree(self):
        """Test an empty tree has only the root."""
        tree = ModuleTree()
        assert len(tree) == 1
        assert tree.root.is_root

    def test_nested_modules(self):
        """Test nested modules are built with their paths."""
        tree = ModuleTree({'modules': {
            'a': {'modules': {'b': {}, 'c': {}}},
            'd': {},
        }})
        assert len(tree) == 5
        assert tree.get('a.b').path == ('a', 'b')
        assert tree.get(['a', 'c']).key == 'c'
        assert tree.parent(tree.get('a.b')) is tree.get('a')
        assert tree.parent(tree.root) is None

    def test_walk_is_depth_first(self):
        """Test walk yields parents before children, depth-first."""
        tree = ModuleTree({'modules': {
            'a': {'modules': {'b': {}}},
            'c': {},
        }})
        assert [node.path for node in tree.walk()] == [(), ('a',), ('a', 'b'), ('c',)]

    def test_children_refer_by_id(self):
        """Test children are stored as name -> node id."""
        tree = ModuleTree({'modules': {'a': {}}})
        child_id = tree.root.children['a']
        assert isinstance(child_id, int)
        assert tree.node(child_id).path == ('a',)
        assert tree.get('a').parent_id == tree.root_id

    def test_non_callable_mutation_raises(self):
        """Test a non callable mutation aborts construction."""
        with pytest.raises(ConfigurationError, match="mutations.x"):
            ModuleTree({'modules': {'a': {'mutations': {'x': 42}}}})

    def test_non_callable_getter_raises(self):
        """Test a non callable getter aborts construction."""
        with pytest.raises(ConfigurationError, match="getters.total"):
            ModuleTree({'getters': {'total': 'sum'}})

    def test_invalid_action_raises(self):
        """Test an action which is neither function nor record raises."""
        with pytest.raises(ConfigurationError):
            ModuleTree({'actions': {'go': {'root': True}}})

    def test_invalid_state_raises(self):
        """Test a state which is neither factory nor mapping raises."""
        with pytest.raises(ConfigurationError, match="state"):
            ModuleTree({'state': 3})

    def test_unknown_key_raises(self):
        """Test unexpected definition keys are reported."""
        with pytest.raises(ConfigurationError, match="mutation"):
            ModuleTree({'mutation': {}})


class TestModuleTreeLookup:
    """Tests for get, find and has."""

    def setup_method(self):
        self.tree = ModuleTree({'modules': {'a': {'modules': {'b': {}}}}})

    def test_get_missing_raises(self):
        """Test get on a missing segment raises PathNotFoundError."""
        with pytest.raises(PathNotFoundError, match="a.x"):
            self.tree.get('a.x')

    def test_path_not_found_is_key_error(self):
        """Test PathNotFoundError can be caught as KeyError."""
        with pytest.raises(KeyError):
            self.tree.get('zzz')

    def test_find_missing_returns_none(self):
        assert self.tree.find(['a', 'x', 'y']) is None

    def test_has(self):
        assert self.tree.has('a.b')
        assert self.tree.has('')
        assert not self.tree.has('b')

    def test_has_malformed_path_is_false(self):
        """Test has does not raise on empty segments."""
        assert self.tree.has('a..b') is False
        assert self.tree.has(['a', 3]) is False

    def test_snapshot_includes_current_children(self):
        """Test snapshot rebuilds the definition with registered children."""
        self.tree.register('a.c', {'namespaced': True})
        snapshot = self.tree.snapshot(self.tree.get('a'))
        assert set(snapshot['modules']) == {'b', 'c'}
        assert snapshot['modules']['c']['namespaced'] is True


class TestModuleTreeMutation:
    """Tests for register, unregister and update."""

    def test_register_attaches_subtree(self):
        """Test register builds and attaches a subtree."""
        tree = ModuleTree({'modules': {'a': {}}})
        node = tree.register('a.c', {'modules': {'d': {}}})
        assert node.runtime is True
        assert tree.get('a.c.d').runtime is True
        assert tree.get('a').runtime is False
        assert tree.get('a').children['c'] == node.node_id

    def test_register_missing_parent_raises(self):
        tree = ModuleTree()
        with pytest.raises(PathNotFoundError):
            tree.register('x.y', {})

    def test_register_root_raises(self):
        with pytest.raises(ConfigurationError):
            ModuleTree().register('', {})

    def test_register_invalid_definition_leaves_tree_untouched(self):
        """Test a malformed definition is rejected before building."""
        tree = ModuleTree()
        with pytest.raises(ConfigurationError):
            tree.register('a', {'modules': {'b': {'getters': {'x': None}}}})
        assert len(tree) == 1
        assert not tree.has('a')

    def test_unregister_removes_subtree(self):
        """Test unregister detaches the node and its descendants."""
        tree = ModuleTree({'modules': {'a': {'modules': {'b': {}}}}})
        removed = tree.unregister('a')
        assert [node.path for node in removed] == [('a',), ('a', 'b')]
        assert not tree.has('a')
        assert len(tree) == 1

    def test_unregister_missing_raises(self):
        with pytest.raises(PathNotFoundError):
            ModuleTree().unregister('nothing')

    def test_update_keeps_node_identity(self):
        """Test update swaps handlers in place."""
        tree = ModuleTree({'modules': {'a': {'mutations': {'x': noop}}}})
        node = tree.get('a')
        handler = lambda state, payload: None
        tree.update({'modules': {'a': {'mutations': {'x': handler}}}})
        assert tree.get('a') is node
        assert node.raw['mutations']['x'] is handler

    def test_update_ignores_new_modules(self):
        """Test update does not create modules."""
        tree = ModuleTree()
        tree.update({'modules': {'new': {}}})
        assert not tree.has('new')


class TestNamespaceFolding:
    """Tests for namespace_of."""

    def test_unnamespaced_child_of_namespaced(self):
        """Test root -> a (namespaced) -> b (plain) folds to 'a/'."""
        tree = ModuleTree({'modules': {
            'a': {'namespaced': True, 'modules': {'b': {}}},
        }})
        assert namespace_of(tree, ['a', 'b']) == 'a/'

    def test_namespaced_child_of_plain(self):
        """Test a plain parent contributes nothing to its child."""
        tree = ModuleTree({'modules': {
            'a': {'modules': {'b': {'namespaced': True}}},
        }})
        assert namespace_of(tree, 'a') == ''
        assert namespace_of(tree, 'a.b') == 'b/'

    def test_all_namespaced(self):
        tree = ModuleTree({'modules': {
            'a': {'namespaced': True, 'modules': {
                'b': {'namespaced': True, 'modules': {'c': {'namespaced': True}}},
            }},
        }})
        assert namespace_of(tree, 'a.b.c') == 'a/b/c/'

    def test_root_namespace_is_empty(self):
        """Test the root never contributes, even when flagged."""
        tree = ModuleTree({'namespaced': True})
        assert namespace_of(tree, ()) == ''

    def test_missing_path_raises(self):
        with pytest.raises(PathNotFoundError):
            namespace_of(ModuleTree(), 'ghost')
