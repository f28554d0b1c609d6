"""User-mediated resolution of the briefing-exists conflict."""

from __future__ import annotations

import logging
from typing import Optional

from utils.exceptions import BriefingConflictError

from .events import ConfirmCallback, ask


logger = logging.getLogger(__name__)

OVERWRITE_PROMPT = "A briefing already exists. Overwrite it?"


class ConflictResolver:
    """Gates a briefing overwrite behind an explicit yes/no confirmation.

    Without a confirmation primitive every conflict is declined, which leaves
    the existing briefing untouched.
    """

    def __init__(self, confirm: Optional[ConfirmCallback] = None) -> None:
        self._confirm = confirm

    async def confirm_overwrite(self, conflict: BriefingConflictError, item_id: str) -> bool:
        confirmed = await ask(self._confirm, OVERWRITE_PROMPT)
        logger.info(
            "briefing conflict item_id=%s existing_chars=%s confirmed=%s",
            item_id,
            len(conflict.existing_briefing or ""),
            confirmed,
        )
        return confirmed
