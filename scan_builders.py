"""Main entry point for the continuous builder scan.

Loads the store snapshot, runs scan cycles until interrupted (or until
SCOUT_MAX_CYCLES cycles have run) and exports the frontend documents at the end.
"""
import asyncio
import sys
import logging
from dotenv import load_dotenv
from builder_scout.config import ConfigurationError, ScanSettings
from builder_scout.infrastructure.github_client import GitHubRestClient
from builder_scout.infrastructure.json_storage import JsonStoreStorage
from builder_scout.application.crawler_service import CrawlerService
from builder_scout.application.export_service import ExportService

# Load environment variables from .env or env file
load_dotenv('.env') or load_dotenv('env')


logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


async def main():
    """Execute the scan."""
    try:
        settings = ScanSettings.from_env()
    except ConfigurationError as e:
        logger.error(str(e))
        sys.exit(1)
    logging.getLogger().setLevel(settings.log_level)

    storage = JsonStoreStorage(settings.data_path)
    store = storage.load()
    github_client = GitHubRestClient(settings.github_token)

    crawler = CrawlerService(
        github_client=github_client,
        storage=storage,
        settings=settings,
    )

    logger.info(
        f"Starting builder scan | builders: {len(store.builders)} | repos: {len(store.repos)} | "
        f"max users/hour: {settings.max_users_per_hour}"
    )

    try:
        summary = await crawler.run(store, max_cycles=settings.max_cycles)

        logger.info("=" * 50)
        logger.info("Scan Summary:")
        logger.info(f"  Cycles: {summary.cycles}")
        logger.info(f"  Users processed: {summary.users_processed}")
        logger.info(f"  Builders accepted: {summary.builders_accepted}")
        logger.info(f"  Repos accepted: {summary.repos_accepted}")
        logger.info(f"  Errors: {summary.errors_encountered}")
        logger.info(f"  Rate limit: {summary.budget.remaining}/{summary.budget.limit}")
        logger.info("=" * 50)

        ExportService(settings.export_dir).export(store)

    except Exception as e:
        logger.error(f"Scan failed: {e}", exc_info=True)
        sys.exit(1)
    finally:
        await crawler.close()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Scan interrupted, last snapshot kept")
