"""One-shot scan through the GraphQL user search.

Each topic query returns users together with their repositories, so a full
pass costs one request per topic.
"""
import asyncio
import sys
import logging
from dotenv import load_dotenv
from builder_scout.config import ConfigurationError, ScanSettings
from builder_scout.infrastructure.github_client import GitHubRestClient
from builder_scout.infrastructure.graphql_client import GitHubGraphQLClient
from builder_scout.infrastructure.json_storage import JsonStoreStorage
from builder_scout.application.crawler_service import CrawlerService

# Load environment variables from .env or env file
load_dotenv('.env') or load_dotenv('env')


logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

TOPICS = [
    "solana", "ethereum", "defi", "web3", "smart contracts",
    "crypto", "blockchain", "ai agent", "llm", "zk",
]


async def main():
    """Execute the GraphQL scan."""
    try:
        settings = ScanSettings.from_env()
    except ConfigurationError as e:
        logger.error(str(e))
        sys.exit(1)
    logging.getLogger().setLevel(settings.log_level)

    storage = JsonStoreStorage(settings.data_path)
    store = storage.load()
    github_client = GitHubRestClient(settings.github_token)
    graphql_client = GitHubGraphQLClient(settings.github_token, repos_per_user=settings.repos_per_user)

    crawler = CrawlerService(
        github_client=github_client,
        storage=storage,
        settings=settings,
        graphql_client=graphql_client,
    )

    try:
        summary = await crawler.run_graphql_scan(store, TOPICS)

        logger.info("=" * 50)
        logger.info("GraphQL Scan Summary:")
        logger.info(f"  Users processed: {summary.users_processed}")
        logger.info(f"  Builders accepted: {summary.builders_accepted}")
        logger.info(f"  Repos accepted: {summary.repos_accepted}")
        logger.info(f"  Topics without results: {summary.empty_topics}")
        logger.info(f"  Failed topics: {summary.errors_encountered}")
        logger.info("=" * 50)

    except Exception as e:
        logger.error(f"GraphQL scan failed: {e}", exc_info=True)
        sys.exit(1)
    finally:
        await crawler.close()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Scan interrupted, last snapshot kept")
