"""Tests for strata.registry — per-database relationship catalog."""

import networkx as nx
import pytest

from strata.model import RelationshipDefinition, RelationshipKind
from strata.registry import RelationshipRegistry

pytestmark = [pytest.mark.unit]


def _rel(target, kind='has_many', **kwargs):
    return RelationshipDefinition(kind=kind, target=target, **kwargs)


@pytest.fixture
def registry():
    return RelationshipRegistry()


class TestRegisterAndLookup:

    def test_appends_in_registration_order(self, registry):
        r1, r2 = _rel('Post'), _rel('Comment')
        registry.register('User', [r1])
        registry.register('User', [r2])
        assert registry.lookup('User') == [r1, r2]

    def test_unknown_name_is_empty(self, registry):
        assert registry.lookup('Nobody') == []

    def test_no_dedup(self, registry):
        r1 = _rel('Post')
        registry.register('User', [r1])
        registry.register('User', [r1])
        assert registry.lookup('User') == [r1, r1]
        assert len(registry) == 2

    def test_lookup_returns_copy(self, registry):
        registry.register('User', [_rel('Post')])
        registry.lookup('User').clear()
        assert len(registry.lookup('User')) == 1

    def test_models_and_contains(self, registry):
        registry.register('User', [_rel('Post')])
        registry.register('Post', [_rel('User', kind='belongs_to')])
        assert registry.models() == ['User', 'Post']
        assert 'User' in registry
        assert 'Tag' not in registry

    def test_registries_are_independent(self):
        a, b = RelationshipRegistry(), RelationshipRegistry()
        a.register('User', [_rel('Post')])
        assert b.lookup('User') == []


class TestGraph:

    def test_edges_carry_metadata(self, registry):
        registry.register('Post', [_rel('User', kind='belongs_to', foreign_key='userId',
                                        alias='author')])
        G = registry.graph()
        assert isinstance(G, nx.MultiDiGraph)
        (_, target, data), = G.edges(data=True)
        assert target == 'User'
        assert data == {'kind': 'belongs_to', 'foreign_key': 'userId', 'alias': 'author'}

    def test_parallel_edges_kept(self, registry):
        registry.register('Post', [_rel('User', kind='belongs_to', alias='author'),
                                   _rel('User', kind='belongs_to', alias='editor')])
        assert registry.graph().number_of_edges('Post', 'User') == 2

    def test_dependencies_are_belongs_to_targets(self, registry):
        registry.register('Post', [_rel('User', kind=RelationshipKind.BELONGS_TO),
                                   _rel('Comment'),
                                   _rel('User', kind='belongs_to')])
        assert registry.dependencies('Post') == ['User']


class TestCreationOrder:

    def test_targets_first(self, registry):
        registry.register('Comment', [_rel('Post', kind='belongs_to')])
        registry.register('Post', [_rel('User', kind='belongs_to')])
        assert registry.creation_order(['Comment', 'Post', 'User']) == ['User', 'Post', 'Comment']

    def test_independent_models_keep_given_order(self, registry):
        assert registry.creation_order(['B', 'A', 'C']) == ['B', 'A', 'C']

    def test_unknown_targets_ignored(self, registry):
        registry.register('Post', [_rel('Ghost', kind='belongs_to')])
        assert registry.creation_order(['Post']) == ['Post']

    def test_self_reference_ignored(self, registry):
        registry.register('Node', [_rel('Node', kind='belongs_to', foreign_key='parentId')])
        assert registry.creation_order(['Node']) == ['Node']

    def test_cycle_falls_back_to_given_order(self, registry):
        registry.register('A', [_rel('B', kind='belongs_to')])
        registry.register('B', [_rel('A', kind='belongs_to')])
        assert registry.creation_order(['A', 'B']) == ['A', 'B']

    def test_defaults_to_registered_models(self, registry):
        registry.register('Post', [_rel('User', kind='belongs_to')])
        registry.register('User', [_rel('Post')])
        assert registry.creation_order() == ['User', 'Post']
