"""Conflict resolution over a discovered dependency graph.

Runs in three steps: manifest overrides, package-level cycle detection,
then classification of each node's constraint set.

+-----------------------------------+-------------------------------+
| Constraint pattern                | Outcome                       |
+===================================+===============================+
| all identical                     | that ref                      |
| all branch, differing             | conflict (ambiguous intent)   |
| all commit, differing             | conflict (pins must match)    |
| mixed ref types                   | conflict                      |
| all SemVer tags, same major       | latest wins                   |
| all SemVer tags, differing major  | conflict (breaking change)    |
| any tag not SemVer                | conflict                      |
+-----------------------------------+-------------------------------+
"""

from typing import Dict, List, Optional

from ..errors import CyclicDependencyError, VersionConflictError
from ..models.dependency_reference import RefType, detect_ref_type
from .dependency_graph import DependencyGraph, GraphNode, find_cycle
from .semver import (
    are_same_major,
    filter_semver_tags,
    get_major_version,
    parse_semver,
    pick_latest,
    sort_versions_descending,
)


class ConflictResolver:
    """Assigns exactly one ``resolved_ref`` to every node or raises."""

    def __init__(self):
        self.messages: List[str] = []

    def resolve(self, graph: DependencyGraph, overrides: Optional[Dict[str, str]] = None) -> DependencyGraph:
        """Resolve every node in place and return the graph.

        Raises:
            CyclicDependencyError: If packages depend on each other in a cycle.
            VersionConflictError: If a node's constraints cannot be reconciled.
        """
        overrides = overrides or {}
        for package_key, node in graph.nodes.items():
            forced = overrides.get(package_key)
            if forced:
                node.resolved_ref = forced
                node.ref_type = detect_ref_type(forced)
                self.messages.append(f"Override applied: {package_key}@{forced}")

        cycle = find_cycle(graph.edges())
        if cycle:
            raise CyclicDependencyError(cycle)

        for node in graph.nodes.values():
            if node.resolved_ref is None:
                node.resolved_ref = self._resolve_node(node)
                node.ref_type = detect_ref_type(node.resolved_ref)
        return graph

    def _resolve_node(self, node: GraphNode) -> str:
        refs = sorted(node.constraints)
        if len(refs) == 1:
            return refs[0]

        package_key = node.package_key
        ref_types = {detect_ref_type(ref) for ref in refs}
        suggested = sort_versions_descending(refs)[0]

        if len(ref_types) > 1:
            raise VersionConflictError(
                package_key,
                node.requirements,
                "dependents mix tags, branches and commits with incompatible intents",
                suggested,
            )

        ref_type = ref_types.pop()
        if ref_type == RefType.BRANCH:
            raise VersionConflictError(
                package_key,
                node.requirements,
                "dependents track different branches, so the intended ref is ambiguous",
                suggested,
            )
        if ref_type == RefType.COMMIT:
            raise VersionConflictError(
                package_key,
                node.requirements,
                "dependents pin different commits",
                suggested,
            )

        if len(filter_semver_tags(refs)) != len(refs):
            raise VersionConflictError(
                package_key,
                node.requirements,
                "tags are not valid SemVer, so the latest cannot be picked automatically",
                suggested,
            )

        parsed = [parse_semver(ref) for ref in refs]
        if not all(are_same_major(parsed[0], version) for version in parsed[1:]):
            majors = sorted({get_major_version(ref) for ref in refs})
            raise VersionConflictError(
                package_key,
                node.requirements,
                f"dependents require different major versions ({', '.join(f'v{m}' for m in majors)}), "
                "which risks breaking changes",
                pick_latest(refs),
            )

        latest = pick_latest(refs)
        self.messages.append(f"Resolved {package_key}: using {latest} (satisfies {', '.join(refs)})")
        return latest
