"""Inheritance resolution over one revision's declarations.

Records are stored in an arena (a plain list) and addressed by position; two
indexes map simple and fully qualified names to positions. Transitive matches
are found by walking a reverse-edge graph (base -> declarations naming it)
outward from the direct matches, with a visited set, so inheritance cycles
terminate and the result never depends on traversal order.

Query syntax:
    ``Base``     bare query, matches the exact edge ``Base`` only
    ``Base<*>``  wildcard query, matches generic instantiations ``Base<...>``
                 (``Base[*]`` is accepted for Python-style generics)
"""

from __future__ import annotations

import logging
from collections import defaultdict, deque
from typing import Dict, Iterable, Iterator, List, Optional, Set, Tuple, Union

from .models import DeclarationRecord, TypeQuery

logger = logging.getLogger(__name__)

GENERIC_MARKERS: Tuple[str, ...] = ("<", "[")
WILDCARD_SUFFIXES: Tuple[str, ...] = ("<*>", "[*]")


def split_generic(raw: str) -> Tuple[str, bool]:
    """Split an inherited type name at its first generic-open marker.

    >>> split_generic("Base<Dto>")
    ('Base', True)
    >>> split_generic("Base")
    ('Base', False)
    """
    text = raw.strip()
    positions = [text.find(marker) for marker in GENERIC_MARKERS if marker in text]
    if not positions:
        return text, False
    return text[:min(positions)].strip(), True


def parse_query(text: str) -> TypeQuery:
    """Parse the boundary query syntax into a :class:`TypeQuery`."""
    compact = "".join(text.split())
    for suffix in WILDCARD_SUFFIXES:
        if compact.endswith(suffix) and len(compact) > len(suffix):
            return TypeQuery(base_name=compact[: -len(suffix)], wildcard=True)
    return TypeQuery(base_name=text.strip(), wildcard=False)


def direct_match(record: DeclarationRecord, query: TypeQuery) -> bool:
    """True if one of *record*'s own edges satisfies *query*.

    A generic edge never satisfies a bare query; a bare edge never satisfies
    a wildcard query.
    """
    for raw in record.inherited_types:
        base_name, is_generic = split_generic(raw)
        if query.wildcard:
            if is_generic and base_name == query.base_name:
                return True
        elif raw.strip() == query.base_name:
            return True
    return False


class DeclarationSet:
    """All declarations of one revision, indexed by name."""

    def __init__(self, records: Iterable[DeclarationRecord] = ()) -> None:
        self._records: List[DeclarationRecord] = list(records)
        self._by_name: Dict[str, List[int]] = defaultdict(list)
        self._by_full_name: Dict[str, List[int]] = defaultdict(list)
        for position, record in enumerate(self._records):
            self._by_name[record.name].append(position)
            self._by_full_name[record.full_name].append(position)
        self._reverse_edges: Optional[Dict[int, List[int]]] = None

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[DeclarationRecord]:
        return iter(self._records)

    @property
    def records(self) -> List[DeclarationRecord]:
        return list(self._records)

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def lookup(self, name: str) -> List[int]:
        """Positions of declarations called *name*; empty when not found.

        Simple names are tried first, then scope-qualified full names.
        """
        positions = self._by_name.get(name)
        if positions:
            return list(positions)
        return list(self._by_full_name.get(name, ()))

    def get(self, position: int) -> DeclarationRecord:
        return self._records[position]

    def _reverse_graph(self) -> Dict[int, List[int]]:
        # Built once and shared by every query against this revision
        if self._reverse_edges is None:
            reverse: Dict[int, List[int]] = defaultdict(list)
            for position, record in enumerate(self._records):
                targets: Set[int] = set()
                for raw in record.inherited_types:
                    base_name, _ = split_generic(raw)
                    targets.update(self.lookup(base_name))
                for target in sorted(targets):
                    reverse[target].append(position)
            self._reverse_edges = reverse
        return self._reverse_edges

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def matching_positions(self, query: TypeQuery) -> Set[int]:
        """Positions of every declaration that directly or transitively matches."""
        seeds = [
            position for position, record in enumerate(self._records)
            if direct_match(record, query)
        ]
        reverse = self._reverse_graph()
        visited: Set[int] = set(seeds)
        queue = deque(seeds)
        while queue:
            current = queue.popleft()
            for dependant in reverse.get(current, ()):
                if dependant not in visited:
                    visited.add(dependant)
                    queue.append(dependant)
        return visited

    def resolve(self, query: Union[str, TypeQuery]) -> List[str]:
        """Sorted labels of the declarations matching *query*.

        Type aliases forward matches but are never reported themselves.
        Matches sharing a simple name are reported by their full names.
        """
        if isinstance(query, str):
            query = parse_query(query)
        matched = [
            self._records[position]
            for position in self.matching_positions(query)
            if not self._records[position].is_typealias
        ]

        full_names_by_name: Dict[str, Set[str]] = defaultdict(set)
        for record in matched:
            full_names_by_name[record.name].add(record.full_name)

        labels: Set[str] = set()
        for name, full_names in full_names_by_name.items():
            if len(full_names) > 1:
                labels.update(full_names)
            else:
                labels.add(name)
        result = sorted(labels)
        logger.debug("Query %s matched %d declarations", query, len(result))
        return result


def resolve(declarations: Union[DeclarationSet, Iterable[DeclarationRecord]],
            query: Union[str, TypeQuery]) -> List[str]:
    """Resolve *query* against *declarations* (a set or any iterable of records)."""
    if not isinstance(declarations, DeclarationSet):
        declarations = DeclarationSet(declarations)
    return declarations.resolve(query)
