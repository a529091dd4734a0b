"""
Autocomplete session tokens.

A token groups a run of prediction queries with the one place-details fetch
that ends it, which is how the places provider bills and keeps results
consistent. The token is created lazily on the first search and replaced
after every completed details fetch and after any provider error.
"""

import logging
import uuid
from typing import Optional

logger = logging.getLogger(__name__)


class AutocompleteSession:
    def __init__(self):
        self._token: Optional[str] = None
        self.rotations = 0

    @property
    def token(self) -> str:
        if self._token is None:
            self._token = uuid.uuid4().hex
        return self._token

    @property
    def is_open(self) -> bool:
        return self._token is not None

    def rotate(self) -> str:
        """Close the current billing session and start a fresh one."""
        previous = self._token
        self._token = uuid.uuid4().hex
        self.rotations += 1
        logger.debug(f"Autocomplete session rotated ({previous} -> {self._token})")
        return self._token
