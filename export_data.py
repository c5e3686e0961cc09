"""Export the store snapshot to JSON documents for the frontend."""
import sys
import logging
from dotenv import load_dotenv
from builder_scout.config import ConfigurationError, ScanSettings
from builder_scout.infrastructure.json_storage import JsonStoreStorage
from builder_scout.application.export_service import ExportService

# Load environment variables from .env or env file
load_dotenv('.env') or load_dotenv('env')


logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


def export_data():
    """Load the snapshot and write builders, categories, coin-worthy and summary documents."""
    try:
        settings = ScanSettings.from_env(require_token=False)
        store = JsonStoreStorage(settings.data_path).load()
        written = ExportService(settings.export_dir).export(store)
    except ConfigurationError as e:
        logger.error(str(e))
        sys.exit(1)
    except Exception as e:
        logger.error(f"Error exporting data: {e}")
        sys.exit(1)

    logger.info(f"Export complete: {', '.join(str(path) for path in written.values())}")


if __name__ == "__main__":
    export_data()
