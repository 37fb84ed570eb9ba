import json
import logging
import os
from datetime import datetime, timezone
from typing import Dict

from courtbook import config

logger = logging.getLogger(__name__)


def ensure_data_dir():
    """Ensures the data directory exists."""
    if not os.path.exists(config.DATA_DIR):
        os.makedirs(config.DATA_DIR)


def load_state() -> Dict:
    """Loads the local store's courts, bookings and blocks from the state file."""
    if not os.path.exists(config.STATE_FILE):
        logger.info("No state file found. Starting fresh.")
        return {}
    try:
        with open(config.STATE_FILE, "r") as f:
            data: Dict = json.load(f)
            if "last_updated" in data and "state" in data:
                logger.info(f"Loaded state, last updated: {data['last_updated']}")
                return data["state"]
            else:
                logger.warning("State file has unexpected format. Starting fresh.")
                return {}
    except (json.JSONDecodeError, IOError):
        logger.warning("Failed to load state file. Starting fresh.")
        return {}


def save_state(state: Dict):
    """Saves the local store's state to the state file with a timestamp."""
    ensure_data_dir()
    try:
        data = {
            "last_updated": datetime.now(timezone.utc).isoformat(),
            "state": state,
        }
        with open(config.STATE_FILE, "w") as f:
            json.dump(data, f, indent=2, default=str)
        logger.info(f"Saved state to {config.STATE_FILE} on {data['last_updated']}")
    except IOError as e:
        logger.error(f"Failed to save state: {e}")
