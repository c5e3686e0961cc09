"""Aggregate counts over a loaded store, shared by the stats script and the export."""
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List, Tuple

from builder_scout.domain.models import RepoRecord, Store

STAR_RANGES: Tuple[Tuple[str, int], ...] = (
    ("0-50", 50),
    ("50-200", 200),
    ("200-1000", 1000),
)
TOP_STAR_RANGE = "1000+"


def star_range(stars: int) -> str:
    for label, upper in STAR_RANGES:
        if stars < upper:
            return label
    return TOP_STAR_RANGE


def _ranked_counts(counter: Counter) -> Dict[str, int]:
    # Most common first, ties alphabetical
    return dict(sorted(counter.items(), key=lambda item: (-item[1], item[0])))


def _average(values: List[float]) -> float:
    return sum(values) / len(values) if values else 0.0


@dataclass
class StoreStats:
    """Counts and breakdowns describing the repos and builders in a store."""
    total_builders: int = 0
    total_repos: int = 0
    coin_worthy_repos: int = 0
    hot_repos: int = 0
    active_repos: int = 0
    quiet_repos: int = 0
    underrated_repos: int = 0
    early_stage_repos: int = 0
    with_tests: int = 0
    with_ci: int = 0
    with_license: int = 0
    blockchain_repos: int = 0
    blockchain_breakdown: Dict[str, int] = field(default_factory=dict)
    language_breakdown: Dict[str, int] = field(default_factory=dict)
    category_breakdown: Dict[str, int] = field(default_factory=dict)
    star_distribution: Dict[str, int] = field(default_factory=dict)
    avg_stars: float = 0.0
    avg_star_velocity: float = 0.0
    avg_repo_age_days: float = 0.0
    avg_final_score: float = 0.0


def collect_stats(store: Store) -> StoreStats:
    """Compute StoreStats for ``store``. Does not modify the store."""
    repos: List[RepoRecord] = list(store.repos.values())

    blockchains: Counter = Counter()
    languages: Counter = Counter()
    categories: Counter = Counter()
    for repo in repos:
        blockchains.update(repo.blockchains)
        categories.update(repo.categories)
        if repo.language:
            languages[repo.language] += 1

    distribution = {label: 0 for label, _ in STAR_RANGES}
    distribution[TOP_STAR_RANGE] = 0
    for repo in repos:
        distribution[star_range(repo.stars)] += 1

    return StoreStats(
        total_builders=len(store.builders),
        total_repos=len(repos),
        coin_worthy_repos=sum(1 for r in repos if r.coin_worthy),
        hot_repos=sum(1 for r in repos if r.is_hot),
        active_repos=sum(1 for r in repos if r.is_active),
        quiet_repos=sum(1 for r in repos if not r.is_active),
        underrated_repos=sum(1 for r in repos if r.is_underrated),
        early_stage_repos=sum(1 for r in repos if r.is_early_stage),
        with_tests=sum(1 for r in repos if r.quality.has_tests),
        with_ci=sum(1 for r in repos if r.quality.has_ci),
        with_license=sum(1 for r in repos if r.quality.has_license),
        blockchain_repos=sum(1 for r in repos if r.blockchains),
        blockchain_breakdown=_ranked_counts(blockchains),
        language_breakdown=_ranked_counts(languages),
        category_breakdown=_ranked_counts(categories),
        star_distribution=distribution,
        avg_stars=_average([r.stars for r in repos]),
        avg_star_velocity=_average([r.star_velocity for r in repos]),
        avg_repo_age_days=_average([r.repo_age_days for r in repos]),
        avg_final_score=_average([r.final_score for r in repos]),
    )
