import asyncio
import json
import sys

from config import load_config, validate_config
from menus.main_menu import main_menu
from utils.logger import setup_logging, log_error, log_warning


def main() -> int:
    setup_logging()

    try:
        config = load_config()
    except FileNotFoundError as e:
        log_error(f"Config file not found: {e}")
        log_error("Copy config.example.json to config.json and set spotify_client_id.")
        return 1
    except json.JSONDecodeError as e:
        log_error(f"Config file contains invalid JSON: {e}")
        return 1

    setup_logging(config.get("log_level", "INFO"))

    is_valid, errors = validate_config(config)
    if not is_valid:
        for error in errors:
            log_warning(f"Config: {error}")

    try:
        asyncio.run(main_menu(config))
    except KeyboardInterrupt:
        pass
    return 0


if __name__ == "__main__":
    sys.exit(main())
