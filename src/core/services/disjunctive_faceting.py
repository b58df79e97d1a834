"""Disjunctive faceting helpers.

Filtering follows "OR within a disjunctive facet, AND across facets". To get
the counts of a disjunctive facet as if its own selection were not applied,
one extra query per disjunctive facet is issued with that facet's refinements
left out. The first (global) result provides hits and pagination; the others
only contribute facet counts.

Everything here is pure: no I/O, no cancellation.
"""

from __future__ import annotations

from typing import Any, Sequence

from pydantic import ValidationError

from core.domain.errors import InvalidResponseError
from core.domain.models import AggregatedResult, FacetFilter, Query, Refinements


def build_facet_filters(
    disjunctive_facets: Sequence[str],
    refinements: Refinements,
    excluded_facet: str | None = None,
) -> list[FacetFilter]:
    """Build facet filters for the global query or for one disjunctive facet.

    `excluded_facet` is None for the global query; for a facet's own query it
    is that facet, whose refinements are then omitted.
    """

    facet_filters: list[FacetFilter] = []
    for facet_name, facet_values in refinements.items():
        if facet_name in disjunctive_facets:
            if facet_name == excluded_facet:
                continue
            facet_filters.append([f"{facet_name}:{value}" for value in facet_values])
        else:
            for value in facet_values:
                facet_filters.append(f"{facet_name}:{value}")
    return facet_filters


def build_disjunctive_queries(
    query: Query,
    disjunctive_facets: Sequence[str],
    refinements: Refinements,
) -> list[Query]:
    """Global query first, then one counts-only query per disjunctive facet."""

    queries = [
        query.copy_with(
            facet_filters=build_facet_filters(disjunctive_facets, refinements, None),
        )
    ]
    for facet in disjunctive_facets:
        # Only the facet counts matter here: no hits, no attributes, no analytics.
        queries.append(
            query.copy_with(
                facets=[facet],
                facet_filters=build_facet_filters(disjunctive_facets, refinements, facet),
                hits_per_page=0,
                attributes_to_retrieve=[],
                attributes_to_highlight=[],
                attributes_to_snippet=[],
                analytics=False,
            )
        )
    return queries


def aggregate_results(
    disjunctive_facets: Sequence[str],
    refinements: Refinements,
    results: Sequence[Any],
) -> AggregatedResult:
    """Merge the raw results of a disjunctive faceting fan-out.

    `results[i]` (i >= 1) must be the answer for `disjunctive_facets[i - 1]`;
    count and order are validated instead of assumed.
    """

    if not isinstance(results, (list, tuple)) or not results:
        raise InvalidResponseError("No results in response", field="results")
    expected = 1 + len(disjunctive_facets)
    if len(results) != expected:
        raise InvalidResponseError(
            f"Expected {expected} results, got {len(results)}",
            field="results",
        )

    base = results[0]
    if not isinstance(base, dict):
        raise InvalidResponseError("Invalid main result in response", field="results")
    main_content: dict[str, Any] = dict(base)

    disjunctive_counts: dict[str, dict[str, Any]] = {}
    for facet, result in zip(disjunctive_facets, results[1:]):
        if not isinstance(result, dict) or not isinstance(result.get("facets"), dict):
            raise InvalidResponseError(
                f"Missing facet counts for disjunctive facet {facet!r}",
                field="facets",
            )
        all_counts = result["facets"]
        if all_counts and facet not in all_counts:
            raise InvalidResponseError(
                f"Result for {facet!r} reports facets {sorted(all_counts)}",
                field="facets",
            )
        counts = all_counts.get(facet, {})
        if not isinstance(counts, dict):
            raise InvalidResponseError(f"Invalid counts for facet {facet!r}", field="facets")

        # The server omits zero counts; refined values must stay deselectable.
        merged = dict(counts)
        for value in refinements.get(facet, []):
            merged.setdefault(value, 0)
        disjunctive_counts[facet] = merged

        # Disjunctive queries are less restrictive than the main one, so they may
        # be approximate even when the main counts are exhaustive.
        if result.get("exhaustiveFacetsCount") is False:
            main_content["exhaustiveFacetsCount"] = False

    main_content["disjunctiveFacets"] = disjunctive_counts
    try:
        return AggregatedResult.model_validate({**main_content, "raw": main_content})
    except ValidationError as exc:
        raise InvalidResponseError(f"Malformed search result: {exc}", field="results") from exc
