"""Flatten the store into the JSON documents the directory front-end reads."""
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

from builder_scout.application.reporting import StoreStats, collect_stats
from builder_scout.domain.evaluation import coin_reasons, coin_thesis
from builder_scout.domain.models import BuilderRecord, RepoRecord, Store, format_timestamp
from builder_scout.infrastructure.store_queries import (
    get_builder_repos,
    get_builders_by_category,
    get_coin_worthy_repos,
    get_top_builders,
)


logger = logging.getLogger(__name__)

EXPORT_CATEGORIES = (
    "crypto", "ai", "infra", "privacy", "games", "defi",
    "wallet", "nft", "mev", "dao", "bridge",
)
TOP_BUILDERS = 100
REPOS_PER_BUILDER = 5
BUILDERS_PER_CATEGORY = 50


def _quality_document(repo: RepoRecord) -> Dict[str, bool]:
    return {
        "hasReadme": repo.quality.has_readme,
        "hasTests": repo.quality.has_tests,
        "hasCI": repo.quality.has_ci,
        "hasLicense": repo.quality.has_license,
    }


def repo_document(repo: RepoRecord) -> Dict[str, Any]:
    return {
        "name": repo.name,
        "fullName": repo.full_name,
        "description": repo.description,
        "url": repo.url,
        "stars": repo.stars,
        "forks": repo.forks,
        "language": repo.language,
        "topics": list(repo.topics),
        "categories": list(repo.categories),
        "score": repo.final_score,
        "coinWorthy": repo.coin_worthy,
        "blockchain": list(repo.blockchains),
        "frameworks": list(repo.frameworks),
        "daysSinceLastCommit": repo.days_since_last_commit,
        "repoAgeInDays": repo.repo_age_days,
        "starVelocity": repo.star_velocity,
        "isUnderrated": repo.is_underrated,
        "isEarlyStage": repo.is_early_stage,
        "isActive": repo.is_active,
        "isHot": repo.is_hot,
        "quality": _quality_document(repo),
    }


def builder_document(store: Store, builder: BuilderRecord) -> Dict[str, Any]:
    return {
        "username": builder.username,
        "name": builder.name,
        "avatar": builder.avatar,
        "bio": builder.bio,
        "location": builder.location,
        "website": builder.website,
        "twitter": builder.twitter,
        "followers": builder.followers,
        "focusAreas": list(builder.focus_areas),
        "reputationScore": builder.reputation_score,
        "consistencyScore": builder.consistency_score,
        "lastActive": builder.last_active_at,
        "topRepos": [
            repo_document(repo)
            for repo in get_builder_repos(store, builder, limit=REPOS_PER_BUILDER)
        ],
    }


def builders_document(store: Store) -> List[Dict[str, Any]]:
    return [builder_document(store, b) for b in get_top_builders(store, limit=TOP_BUILDERS)]


def categories_document(store: Store, categories: Sequence[str] = EXPORT_CATEGORIES) -> Dict[str, List[str]]:
    return {
        category: [b.username for b in get_builders_by_category(store, category)[:BUILDERS_PER_CATEGORY]]
        for category in categories
    }


def coin_worthy_document(store: Store) -> List[Dict[str, Any]]:
    documents = []
    for repo in get_coin_worthy_repos(store):
        documents.append({
            "fullName": repo.full_name,
            "builder": repo.builder,
            "description": repo.description,
            "url": repo.url,
            "stars": repo.stars,
            "categories": list(repo.categories),
            "score": repo.final_score,
            "language": repo.language,
            "blockchain": list(repo.blockchains),
            "isHot": repo.is_hot,
            "isUnderrated": repo.is_underrated,
            "reasons": coin_reasons(repo.categories),
            "thesis": coin_thesis(repo.name, repo.categories),
        })
    return documents


def summary_document(
    stats: StoreStats,
    exported_builders: int,
    categories: Dict[str, List[str]],
    now: datetime,
) -> Dict[str, Any]:
    return {
        "totalBuilders": exported_builders,
        "totalRepos": stats.total_repos,
        "coinWorthyRepos": stats.coin_worthy_repos,
        "hotRepos": stats.hot_repos,
        "activeRepos": stats.active_repos,
        "quietRepos": stats.quiet_repos,
        "underratedRepos": stats.underrated_repos,
        "earlyStageRepos": stats.early_stage_repos,
        "withTests": stats.with_tests,
        "withCI": stats.with_ci,
        "withLicense": stats.with_license,
        "blockchainRepos": stats.blockchain_repos,
        "blockchainBreakdown": stats.blockchain_breakdown,
        "languageBreakdown": stats.language_breakdown,
        "categories": {category: len(names) for category, names in categories.items()},
        "lastUpdated": format_timestamp(now),
    }


class ExportService:
    """Writes builders.json, categories.json, coin-worthy.json and summary.json."""

    BUILDERS_FILE = "builders.json"
    CATEGORIES_FILE = "categories.json"
    COIN_WORTHY_FILE = "coin-worthy.json"
    SUMMARY_FILE = "summary.json"

    def __init__(self, export_dir: Union[str, Path]):
        self._export_dir = Path(export_dir)

    def _write(self, filename: str, document: Any) -> Path:
        path = self._export_dir / filename
        path.write_text(json.dumps(document, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
        return path

    def export(self, store: Store, now: Optional[datetime] = None) -> Dict[str, Path]:
        """Write all four documents.

        Args:
            store: Loaded store; not modified
            now: Timestamp recorded as ``lastUpdated`` in the summary

        Returns:
            Mapping of file name to written path
        """
        now = now or datetime.now(timezone.utc)
        self._export_dir.mkdir(parents=True, exist_ok=True)

        builders = builders_document(store)
        categories = categories_document(store)
        coin_worthy = coin_worthy_document(store)
        stats = collect_stats(store)
        summary = summary_document(stats, len(builders), categories, now)

        written = {
            self.BUILDERS_FILE: self._write(self.BUILDERS_FILE, builders),
            self.CATEGORIES_FILE: self._write(self.CATEGORIES_FILE, categories),
            self.COIN_WORTHY_FILE: self._write(self.COIN_WORTHY_FILE, coin_worthy),
            self.SUMMARY_FILE: self._write(self.SUMMARY_FILE, summary),
        }

        logger.info(f"Exported {len(builders)} builders to {written[self.BUILDERS_FILE]}")
        logger.info(f"Exported {len(coin_worthy)} coin-worthy repos to {written[self.COIN_WORTHY_FILE]}")
        logger.info(f"Exported {len(categories)} categories to {written[self.CATEGORIES_FILE]}")
        logger.info(
            f"Hot: {stats.hot_repos} | Hidden gems: {stats.underrated_repos} | "
            f"Early stage: {stats.early_stage_repos} | Blockchain tagged: {stats.blockchain_repos}"
        )
        return written
