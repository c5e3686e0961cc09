"""Read-side projections over a loaded Store.

None of these mutate the store; repository lists are ordered by final score,
best first.
"""
from typing import Callable, List, Optional

from builder_scout.domain.models import BuilderRecord, RepoRecord, Store


def _ranked(repos: List[RepoRecord]) -> List[RepoRecord]:
    # Ties broken by id so exports are stable between runs
    return sorted(repos, key=lambda r: (-r.final_score, r.id))


def _repos_where(store: Store, predicate: Callable[[RepoRecord], bool]) -> List[RepoRecord]:
    return _ranked([repo for repo in store.repos.values() if predicate(repo)])


def get_top_builders(store: Store, limit: Optional[int] = None) -> List[BuilderRecord]:
    """Builders ordered by reputation score, highest first."""
    builders = sorted(
        store.builders.values(), key=lambda b: (-b.reputation_score, b.username.lower())
    )
    return builders if limit is None else builders[:limit]


def get_coin_worthy_repos(store: Store) -> List[RepoRecord]:
    return _repos_where(store, lambda r: r.coin_worthy)


def get_repos_by_blockchain(store: Store, chain: str) -> List[RepoRecord]:
    return _repos_where(store, lambda r: chain in r.blockchains)


def get_hot_repos(store: Store) -> List[RepoRecord]:
    return _repos_where(store, lambda r: r.is_hot)


def get_underrated_repos(store: Store) -> List[RepoRecord]:
    return _repos_where(store, lambda r: r.is_underrated)


def get_early_stage_repos(store: Store) -> List[RepoRecord]:
    return _repos_where(store, lambda r: r.is_early_stage)


def get_builder_repos(store: Store, builder: BuilderRecord, limit: Optional[int] = None) -> List[RepoRecord]:
    """A builder's stored quality repos, best first. Ids missing from the store are skipped."""
    repos = _ranked([store.repos[i] for i in builder.quality_repos if i in store.repos])
    return repos if limit is None else repos[:limit]


def get_builders_by_focus_area(store: Store, category: str) -> List[BuilderRecord]:
    return [b for b in get_top_builders(store) if category in b.focus_areas]


def get_builders_by_category(store: Store, category: str) -> List[BuilderRecord]:
    """Builders with at least one stored quality repo tagged ``category``."""
    return [
        b
        for b in get_top_builders(store)
        if any(category in r.categories for r in get_builder_repos(store, b))
    ]
