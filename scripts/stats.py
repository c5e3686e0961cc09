"""Query and display statistics about the scanned builders and repositories."""
import sys
from dotenv import load_dotenv
from builder_scout.config import ScanSettings
from builder_scout.infrastructure.json_storage import JsonStoreStorage
from builder_scout.infrastructure.store_queries import get_builder_repos, get_top_builders
from builder_scout.application.reporting import collect_stats

# Load environment variables from .env or env file
load_dotenv('.env') or load_dotenv('env')


def print_section(title: str):
    """Print a section header."""
    print("\n" + "=" * 60)
    print(title)
    print("=" * 60)


def print_counts(counts: dict, limit: int = None):
    items = list(counts.items())
    if limit is not None:
        items = items[:limit]
    for name, count in items:
        print(f"{name:<30} {count:>10,}")


def display_statistics():
    """Display various statistics about the scanned data."""
    settings = ScanSettings.from_env(require_token=False)
    store = JsonStoreStorage(settings.data_path).load()
    stats = collect_stats(store)

    print_section("Overview")
    print(f"Total builders: {stats.total_builders:,}")
    print(f"Total repos: {stats.total_repos:,}")
    print(f"Coin-worthy repos: {stats.coin_worthy_repos:,}")

    print_section("Activity")
    print(f"Hot (< 7 days): {stats.hot_repos:,}")
    print(f"Active (< 30 days): {stats.active_repos:,}")
    print(f"Quiet (30+ days): {stats.quiet_repos:,}")

    print_section("Discovery")
    print(f"Hidden gems: {stats.underrated_repos:,}")
    print(f"Early stage (< 90 days): {stats.early_stage_repos:,}")

    print_section("Quality")
    print(f"Has tests: {stats.with_tests:,}")
    print(f"Has CI/CD: {stats.with_ci:,}")
    print(f"Has license: {stats.with_license:,}")

    if stats.blockchain_breakdown:
        print_section("Blockchains")
        print_counts(stats.blockchain_breakdown)

    print_section("Top 10 Languages")
    print_counts(stats.language_breakdown, limit=10)

    print_section("Categories")
    print_counts(stats.category_breakdown)

    print_section("Top 10 Builders")
    print(f"{'Builder':<30} {'Score':>8} {'Repos':>8}  Focus")
    print("-" * 60)
    for builder in get_top_builders(store, limit=10):
        repos = get_builder_repos(store, builder)
        badges = []
        if any(r.is_hot for r in repos):
            badges.append("hot")
        if any(r.is_underrated for r in repos):
            badges.append("gem")
        if any(r.is_early_stage for r in repos):
            badges.append("early")
        print(
            f"{builder.username:<30} {builder.reputation_score:>8} {len(builder.quality_repos):>8}  "
            f"{', '.join(builder.focus_areas)} {' '.join(f'[{b}]' for b in badges)}"
        )

    print_section("Star Distribution")
    print(f"{'Star Range':<20} {'Count':>15} {'Percentage':>15}")
    print("-" * 60)
    for label, count in stats.star_distribution.items():
        percentage = (count / stats.total_repos * 100) if stats.total_repos > 0 else 0
        print(f"{label:<20} {count:>15,} {percentage:>14.1f}%")

    print_section("Averages")
    print(f"Stars per repo: {stats.avg_stars:.1f}")
    print(f"Star velocity: {stats.avg_star_velocity:.2f} stars/day")
    print(f"Repo age: {stats.avg_repo_age_days:.0f} days")
    print(f"Final score: {stats.avg_final_score:.1f}")

    print_section("Scan State")
    state = store.scan_state
    print(f"Last scan: {state.last_scan_at or 'never'}")
    print(f"Cycles: {state.cycles:,}")
    print(f"Users processed: {state.users_processed:,}")
    print(f"Snapshot updated: {store.last_updated or 'never'}")

    print("\n" + "=" * 60)
    print("Query completed successfully!")
    print("=" * 60)


if __name__ == "__main__":
    try:
        display_statistics()
    except Exception as e:
        print(f"Error: {e}")
        sys.exit(1)
