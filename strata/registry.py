"""
Strata Relationship Registry — per-Database relationship catalog.

Append-only multimap: model name → ordered list of RelationshipDefinitions.
Owned by a Database instance (not process-global), so two databases never
see each other's relationships.

- register(name, rels)  concatenate onto whatever is stored; no dedup
- lookup(name)          accumulated list, [] for unknown names
- graph()               networkx.MultiDiGraph, model → target per relationship
- creation_order()      models ordered so belongs_to targets come first
"""

from typing import Iterable, Optional

import networkx as nx

from strata.model import RelationshipDefinition, RelationshipKind


class RelationshipRegistry:
    """Relationship metadata keyed by defining model name."""

    def __init__(self):
        self._relationships: dict[str, list[RelationshipDefinition]] = {}

    def register(self, model_name: str,
                 relationships: Iterable[RelationshipDefinition]) -> None:
        """Append relationships under model_name, in the given order."""
        self._relationships.setdefault(model_name, []).extend(relationships)

    def lookup(self, model_name: str) -> list[RelationshipDefinition]:
        """All relationships registered under model_name. Never raises."""
        return list(self._relationships.get(model_name, []))

    def models(self) -> list[str]:
        """Model names with at least one registration, first-seen order."""
        return list(self._relationships)

    def __contains__(self, model_name: str) -> bool:
        return model_name in self._relationships

    def __len__(self) -> int:
        return sum(len(rels) for rels in self._relationships.values())

    # ═══════════════════════════════════════════════════════════════════════
    # GRAPH
    # ═══════════════════════════════════════════════════════════════════════

    def graph(self) -> nx.MultiDiGraph:
        """Directed multigraph: one edge source → target per relationship.

        Edge attributes: kind, foreign_key, alias.
        """
        G = nx.MultiDiGraph()
        for source, rels in self._relationships.items():
            G.add_node(source)
            for rel in rels:
                G.add_edge(source, rel.target, kind=rel.kind.value,
                           foreign_key=rel.foreign_key, alias=rel.alias)
        return G

    def dependencies(self, model_name: str) -> list[str]:
        """Targets model_name points at through belongs_to, registration order."""
        seen = []
        for rel in self.lookup(model_name):
            if rel.kind is RelationshipKind.BELONGS_TO and rel.target not in seen:
                seen.append(rel.target)
        return seen

    def creation_order(self, model_names: Optional[Iterable[str]] = None) -> list[str]:
        """Order model_names so every belongs_to target precedes its dependents.

        Targets outside model_names are ignored. A cycle falls back to the
        given order.
        """
        names = list(model_names) if model_names is not None else self.models()
        wanted = set(names)

        G = nx.DiGraph()
        G.add_nodes_from(names)
        for name in names:
            for target in self.dependencies(name):
                if target in wanted and target != name:
                    G.add_edge(target, name)

        position = {name: i for i, name in enumerate(names)}
        try:
            return list(nx.lexicographical_topological_sort(G, key=position.get))
        except nx.NetworkXUnfeasible:
            return names
