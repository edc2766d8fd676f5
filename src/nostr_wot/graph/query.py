"""Shortest-path queries over the locally stored follow graph.

Layered BFS from a source pubkey, one hop per round, bounded by
``max_hops``. Alongside each discovered node the search carries:

- the number of distinct shortest paths from the source to it
- the set of root-adjacent identities ("first hops") those paths pass

The search stops at the first round in which the target shows up in
some frontier node's follow list; all hits of that round are counted.
Nodes without a known follow list are dead ends.

Reads only the store; never touches the network.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from .store import FollowGraphStore


@dataclass
class PathResult:
    """Shortest-path summary between two identities."""

    distance: int
    paths: int
    bridges: list[str] = field(default_factory=list)


@dataclass
class _Reach:
    paths: int
    first_hops: set[str]


async def find_shortest_path(
    store: FollowGraphStore,
    source: str,
    target: str,
    max_hops: int,
) -> PathResult | None:
    """Find the shortest follow path from *source* to *target*.

    Args:
        store: Follow graph to read
        source: Canonical source pubkey
        target: Canonical target pubkey
        max_hops: Maximum path length to explore

    Returns:
        PathResult, or None when the target is not reachable within
        *max_hops* in the stored graph
    """
    if source == target:
        return PathResult(distance=0, paths=1, bridges=[])

    visited: set[str] = {source}
    frontier: dict[str, _Reach] = {source: _Reach(paths=1, first_hops=set())}
    distance = 0

    while frontier and distance < max_hops:
        distance += 1
        next_layer: dict[str, _Reach] = {}
        hits = 0
        bridges: set[str] = set()

        for pubkey, reach in frontier.items():
            follows = await store.get_follows(pubkey)
            if not follows:
                continue

            for follow in follows:
                if follow == target:
                    hits += reach.paths
                    bridges |= reach.first_hops
                    continue
                if follow in visited:
                    continue

                # Root-adjacent nodes are their own first hop
                first_hops = {follow} if distance == 1 else reach.first_hops
                entry = next_layer.get(follow)
                if entry is None:
                    next_layer[follow] = _Reach(paths=reach.paths, first_hops=set(first_hops))
                else:
                    entry.paths += reach.paths
                    entry.first_hops |= first_hops

        if hits:
            return PathResult(distance=distance, paths=hits, bridges=sorted(bridges))

        visited.update(next_layer)
        frontier = next_layer

    return None
