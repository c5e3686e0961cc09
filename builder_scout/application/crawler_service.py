"""Crawler service orchestrating the builder scan.

Drives discovery strategies against GitHub, evaluates every candidate's
repositories, and writes accepted repos and builders into the store.
"""
import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import List, Optional, Sequence, Tuple
from builder_scout.application.clock import Clock, SystemClock
from builder_scout.application.rate_limit import HourlyThrottle, RateLimitGuard
from builder_scout.application.strategies import (
    DiscoveryStrategy,
    default_strategies,
    page_for_cycle,
)
from builder_scout.config import ScanSettings
from builder_scout.domain.evaluation import (
    evaluate_builder,
    evaluate_repo,
    follower_band_reason,
    rejection_reason,
)
from builder_scout.domain.github_interface import IGitHubClient, IGitHubGraphQLClient
from builder_scout.domain.models import (
    BuilderRecord,
    CycleMetrics,
    RateBudget,
    RawRepo,
    RawUser,
    RepoRecord,
    ScanSummary,
    Store,
    format_timestamp,
    parse_timestamp,
)
from builder_scout.domain.policy import DEFAULT_POLICY, ScoringPolicy
from builder_scout.domain.repository_interface import IStoreStorage


logger = logging.getLogger(__name__)


class ScanPhase(Enum):
    IDLE = "idle"
    FETCH_CANDIDATES = "fetch_candidates"
    PROCESS_USER = "process_user"
    SNAPSHOT = "snapshot"


class UserOutcome(Enum):
    SKIPPED_COOLDOWN = "skipped_cooldown"
    FETCH_FAILED = "fetch_failed"
    OUT_OF_BAND = "out_of_band"
    REJECTED = "rejected"
    ACCEPTED = "accepted"


@dataclass(frozen=True)
class UserResult:
    """What happened to one candidate."""
    outcome: UserOutcome
    repos_accepted: int = 0
    reason: Optional[str] = None

    @property
    def processed(self) -> bool:
        return self.outcome is not UserOutcome.SKIPPED_COOLDOWN


class CrawlerService:
    """Application service for scanning GitHub builders.

    Single-threaded: every await is either a GitHub call or a clock sleep,
    and the store is only touched between awaits, so no locking is needed.
    """

    def __init__(
        self,
        github_client: IGitHubClient,
        storage: IStoreStorage,
        settings: ScanSettings = ScanSettings(),
        policy: ScoringPolicy = DEFAULT_POLICY,
        clock: Optional[Clock] = None,
        strategies: Optional[Sequence[DiscoveryStrategy]] = None,
        graphql_client: Optional[IGitHubGraphQLClient] = None,
    ):
        """Initialize crawler service.

        Args:
            github_client: GitHub REST client implementation
            storage: Store snapshot storage implementation
            settings: Batch sizes, delays and throttles
            policy: Scoring policy handed to the evaluator
            clock: Time source (wall clock by default)
            strategies: Discovery strategies, used round-robin
            graphql_client: Needed only for ``run_graphql_scan``
        """
        self._github_client = github_client
        self._graphql_client = graphql_client
        self._storage = storage
        self._settings = settings
        self._policy = policy
        self._clock = clock or SystemClock()
        self._strategies = list(strategies) if strategies is not None else default_strategies(policy)
        self._guard = RateLimitGuard(
            github_client,
            self._clock,
            buffer=settings.rate_limit_buffer,
            margin_seconds=settings.reset_margin_seconds,
        )
        self._throttle = HourlyThrottle(max_per_hour=settings.max_users_per_hour)
        self.phase = ScanPhase.IDLE

    @property
    def rate_limit_waits(self) -> int:
        return self._guard.waits

    def recently_scanned(self, username: str, store: Store, now: datetime) -> bool:
        """True if ``username`` was scanned less than the cool-down window ago."""
        times = [store.scan_state.last_scanned(username)]
        builder = store.builders.get(username)
        if builder is not None:
            times.append(parse_timestamp(builder.last_scanned_at))
        known = [t for t in times if t is not None]
        if not known:
            return False
        return now - max(known) < timedelta(hours=self._settings.cooldown_hours)

    async def process_user(self, username: str, store: Store, budget: RateBudget) -> Tuple[UserResult, RateBudget]:
        """Fetch and evaluate one candidate.

        Args:
            username: GitHub login
            store: Store to update in place
            budget: Current API budget

        Returns:
            The outcome and the updated budget
        """
        now = self._clock.now()
        if self.recently_scanned(username, store, now):
            logger.debug(f"{username} scanned within {self._settings.cooldown_hours}h, skipping")
            return UserResult(UserOutcome.SKIPPED_COOLDOWN), budget

        user, budget = await self._github_client.fetch_user(username, budget)
        if user is None:
            logger.warning(f"Could not fetch profile for {username}")
            return UserResult(UserOutcome.FETCH_FAILED), budget

        band_reason = follower_band_reason(user, self._policy)
        if band_reason:
            store.scan_state.mark_scanned(username, now)
            logger.debug(f"{username} skipped: {band_reason}")
            return UserResult(UserOutcome.OUT_OF_BAND, reason=band_reason), budget

        budget = await self._guard.wait_if_needed(budget)
        repos, budget = await self._github_client.fetch_user_repos(
            username, budget, limit=self._settings.repos_per_user
        )
        if repos is None:
            logger.warning(f"Could not fetch repositories for {username}")
            return UserResult(UserOutcome.FETCH_FAILED), budget

        return self.process_profile(user, repos, store, self._clock.now()), budget

    def process_profile(self, user: RawUser, repos: List[RawRepo], store: Store, now: datetime) -> UserResult:
        """Evaluate a fetched profile and its repositories and update the store.

        Repositories already in the store are never re-scored; they only count
        toward the builder's quality set.
        """
        username = user.login
        band_reason = follower_band_reason(user, self._policy)
        if band_reason:
            store.scan_state.mark_scanned(username, now)
            return UserResult(UserOutcome.OUT_OF_BAND, reason=band_reason)

        existing = store.builders.get(username)
        quality_ids: List[int] = list(existing.quality_repos) if existing else []
        new_repos = 0

        for repo in repos:
            if repo.id in store.repos:
                if repo.id not in quality_ids:
                    quality_ids.append(repo.id)
                continue

            if repo.stargazers_count > self._policy.max_repo_stars:
                continue

            evaluation = evaluate_repo(repo, now, self._policy)
            if evaluation is None:
                logger.debug(f"  {repo.full_name} rejected: {rejection_reason(repo, now, self._policy) or 'low score'}")
                continue

            store.repos[repo.id] = RepoRecord.from_evaluation(repo, evaluation, username, now)
            quality_ids.append(repo.id)
            new_repos += 1
            logger.info(
                f"    {repo.name} - Score: {evaluation.final_score}"
                f"{' (coin-worthy)' if evaluation.coin_worthy else ''}"
            )

        store.scan_state.mark_scanned(username, now)
        store.scan_state.repos_accepted += new_repos

        builder_eval = evaluate_builder(user, quality_ids, self._policy)
        if not builder_eval.accepted:
            logger.info(f"  {username} rejected: {builder_eval.reason}")
            return UserResult(UserOutcome.REJECTED, repos_accepted=new_repos, reason=builder_eval.reason)

        store.builders[username] = self._builder_record(user, repos, quality_ids, builder_eval.score, existing, store, now)
        if existing is None:
            store.scan_state.builders_accepted += 1

        record = store.builders[username]
        logger.info(
            f"  {username} | Score: {record.reputation_score} | Repos: {len(quality_ids)} | "
            f"{', '.join(record.focus_areas)}"
        )
        return UserResult(UserOutcome.ACCEPTED, repos_accepted=new_repos)

    @staticmethod
    def _builder_record(
        user: RawUser,
        repos: List[RawRepo],
        quality_ids: List[int],
        score: int,
        existing: Optional[BuilderRecord],
        store: Store,
        now: datetime,
    ) -> BuilderRecord:
        quality_records = [store.repos[i] for i in quality_ids if i in store.repos]

        focus_areas: List[str] = []
        for record in quality_records:
            for category in record.categories:
                if category not in focus_areas:
                    focus_areas.append(category)

        consistency = 0
        if quality_records:
            consistency = round(sum(r.final_score for r in quality_records) / len(quality_records))

        now_text = format_timestamp(now)
        last_active = format_timestamp(max(r.pushed_at for r in repos)) if repos else now_text

        return BuilderRecord(
            id=user.id,
            username=user.login,
            name=user.name,
            avatar=user.avatar_url,
            profile_url=user.html_url,
            bio=user.bio,
            location=user.location,
            website=user.blog,
            twitter=user.twitter_username,
            total_repos=user.public_repos,
            quality_repos=quality_ids,
            focus_areas=focus_areas,
            followers=user.followers,
            public_repos=user.public_repos,
            reputation_score=score,
            consistency_score=consistency,
            first_seen_at=existing.first_seen_at if existing else now_text,
            last_active_at=last_active,
            last_scanned_at=now_text,
        )

    def _snapshot(self, store: Store, budget: RateBudget) -> None:
        previous = self.phase
        self.phase = ScanPhase.SNAPSHOT
        store.scan_state.rate_limit = budget
        self._storage.save(store, self._clock.now())
        self.phase = previous

    async def run_cycle(self, store: Store, budget: RateBudget, cycle: int) -> Tuple[CycleMetrics, RateBudget]:
        """Run one discovery strategy and process its candidates.

        Args:
            store: Store to update in place
            budget: Current API budget
            cycle: Zero-based cycle number, selects the strategy

        Returns:
            Metrics for the cycle and the updated budget
        """
        started = self._clock.now()
        waits_before = self._guard.waits

        self.phase = ScanPhase.FETCH_CANDIDATES
        await self._throttle.wait_if_needed(self._clock)
        budget = await self._guard.wait_if_needed(budget)
        budget = await self._github_client.fetch_rate_limit(budget)

        strategy = self._strategies[cycle % len(self._strategies)]
        page = page_for_cycle(cycle, len(self._strategies))
        logger.info(
            f"{strategy.name} (page {page}) | Rate: {budget.remaining}/{budget.limit} | "
            f"Hour: {self._throttle.count}/{self._throttle.max_per_hour}"
        )
        usernames, budget = await strategy.candidates(self._github_client, budget, self._clock.now(), page)
        logger.info(f"   {len(usernames)} candidates")

        processed = accepted = repos_accepted = errors = 0
        for username in usernames[:self._settings.batch_size]:
            budget = await self._guard.wait_if_needed(budget)
            await self._throttle.wait_if_needed(self._clock)

            self.phase = ScanPhase.PROCESS_USER
            try:
                result, budget = await self.process_user(username, store, budget)
            except Exception as e:
                errors += 1
                logger.error(f"  {username} failed: {e}", exc_info=True)
                continue
            if not result.processed:
                continue

            processed += 1
            repos_accepted += result.repos_accepted
            if result.outcome is UserOutcome.ACCEPTED:
                accepted += 1
            store.scan_state.users_processed += 1
            self._throttle.record(self._clock.now())

            await self._clock.sleep(self._settings.user_delay_seconds)
            if processed % self._settings.snapshot_every == 0:
                self._snapshot(store, budget)

        store.scan_state.cycles += 1
        self._snapshot(store, budget)
        self.phase = ScanPhase.IDLE

        metrics = CycleMetrics(
            strategy=strategy.name,
            candidates=len(usernames),
            users_processed=processed,
            builders_accepted=accepted,
            repos_accepted=repos_accepted,
            duration_seconds=(self._clock.now() - started).total_seconds(),
            rate_limit_waits=self._guard.waits - waits_before,
            errors=errors,
        )
        logger.info(
            f"Batch: {accepted}/{processed} builders | +{repos_accepted} repos | "
            f"Rate: {budget.remaining} remaining"
        )
        return metrics, budget

    async def run(
        self,
        store: Store,
        stop_event: Optional[asyncio.Event] = None,
        max_cycles: Optional[int] = None,
    ) -> ScanSummary:
        """Scan continuously until ``stop_event`` is set or ``max_cycles`` cycles have run.

        A failing cycle is logged and followed by a cooldown; it never ends the run.

        Args:
            store: Store loaded by the caller, updated in place and snapshotted
            stop_event: Set it to stop after the current cycle
            max_cycles: Upper bound on cycles (None runs until stopped)

        Returns:
            ScanSummary with run totals
        """
        budget = await self._github_client.fetch_rate_limit(store.scan_state.rate_limit)
        cycles = processed = accepted = repos_accepted = errors = 0

        def should_stop() -> bool:
            if stop_event is not None and stop_event.is_set():
                return True
            return max_cycles is not None and cycles >= max_cycles

        while not should_stop():
            logger.info("=" * 70)
            logger.info(
                f"CYCLE #{cycles + 1} | Builders: {len(store.builders)} | "
                f"Repos: {len(store.repos)} | Session: +{accepted}"
            )
            try:
                metrics, budget = await self.run_cycle(store, budget, cycles)
                processed += metrics.users_processed
                accepted += metrics.builders_accepted
                repos_accepted += metrics.repos_accepted
                errors += metrics.errors
            except Exception as e:
                errors += 1
                self.phase = ScanPhase.IDLE
                logger.error(f"Scan cycle #{cycles + 1} failed: {e}", exc_info=True)
                await self._clock.sleep(self._settings.error_cooldown_seconds)
            cycles += 1

            if should_stop():
                break
            await self._clock.sleep(self._settings.cycle_delay_seconds)

        return ScanSummary(
            cycles=cycles,
            users_processed=processed,
            builders_accepted=accepted,
            repos_accepted=repos_accepted,
            errors_encountered=errors,
            budget=budget,
        )

    async def run_graphql_scan(self, store: Store, topics: Sequence[str], min_repos: int = 5) -> ScanSummary:
        """One pass over ``topics`` using the GraphQL user search.

        Each search returns users together with their repositories, so a user
        costs no extra request.

        Args:
            store: Store to update in place
            topics: Search keywords, one query each
            min_repos: Minimum public repositories in the user search

        Returns:
            ScanSummary with totals for the pass
        """
        if self._graphql_client is None:
            raise ValueError("run_graphql_scan needs a GraphQL client")

        guard = RateLimitGuard(
            None,
            self._clock,
            buffer=self._settings.rate_limit_buffer,
            margin_seconds=self._settings.reset_margin_seconds,
        )
        budget = RateBudget()
        processed = accepted = repos_accepted = errors = empty_topics = 0

        for topic in topics:
            query = (
                f"followers:{self._policy.min_followers}..{self._policy.max_followers} "
                f"repos:>{min_repos} {topic}"
            )
            logger.info(f"Searching topic: {topic}")
            budget = await guard.wait_if_needed(budget)

            self.phase = ScanPhase.FETCH_CANDIDATES
            users, budget = await self._graphql_client.search_users_with_repos(
                query, budget, first=self._settings.graphql_users_per_topic
            )
            if users is None:
                errors += 1
                continue
            if not users:
                empty_topics += 1
                continue

            for user, repos in users:
                self.phase = ScanPhase.PROCESS_USER
                now = self._clock.now()
                if self.recently_scanned(user.login, store, now):
                    continue

                logger.info(f"Processing: {user.login} ({user.followers} followers, {user.public_repos} repos)")
                result = self.process_profile(user, repos, store, now)
                processed += 1
                repos_accepted += result.repos_accepted
                if result.outcome is UserOutcome.ACCEPTED:
                    accepted += 1
                store.scan_state.users_processed += 1

                if processed % self._settings.snapshot_every == 0:
                    self._snapshot(store, budget)
                await self._clock.sleep(self._settings.graphql_user_delay_seconds)

        self._snapshot(store, budget)
        self.phase = ScanPhase.IDLE
        logger.info(
            f"GraphQL scan complete | users: {processed} | new builders: {accepted} | "
            f"total builders: {len(store.builders)} | total repos: {len(store.repos)}"
        )
        return ScanSummary(
            cycles=1,
            users_processed=processed,
            builders_accepted=accepted,
            repos_accepted=repos_accepted,
            errors_encountered=errors,
            budget=budget,
            empty_topics=empty_topics,
        )

    async def close(self) -> None:
        """Close connections."""
        await self._github_client.close()
        if self._graphql_client is not None:
            await self._graphql_client.close()
