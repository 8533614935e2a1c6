import json
import logging
import os
from typing import Optional

from constants import VERIFIER_KEY, VERIFIER_STORE_FILE

logger = logging.getLogger(__name__)


class VerifierStore:
    """Single-slot local store for the PKCE verifier.

    The verifier has to survive the trip through the browser (and possibly a
    restart of this program), so it is kept in a small JSON file under one
    fixed key. Saving overwrites whatever was there.
    """

    def __init__(self, path: str = VERIFIER_STORE_FILE, *, key: str = VERIFIER_KEY):
        self.path = path
        self.key = key

    def ensure_dir(self) -> None:
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)

    def load(self) -> Optional[str]:
        if not os.path.exists(self.path):
            return None

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Ignoring unreadable verifier store %s: %s", self.path, e)
            return None

        if not isinstance(data, dict):
            return None
        value = data.get(self.key)
        return str(value) if value else None

    def save(self, verifier: str) -> None:
        self.ensure_dir()
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump({self.key: verifier}, f)

    def clear(self) -> None:
        if os.path.exists(self.path):
            os.remove(self.path)
