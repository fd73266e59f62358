# app/services/download_registry.py
import logging
from typing import Set

logger = logging.getLogger(__name__)


class DownloadRegistry:
    """
    Set of file ids whose download payment has been accepted.

    Membership only: no payer, amount or transaction is kept. Once a file is
    marked paid it stays unlocked for every client until the process exits.
    """

    def __init__(self):
        self._paid: Set[str] = set()

    def mark_paid(self, file_id: str) -> None:
        if file_id not in self._paid:
            logger.info(f"Marking file '{file_id}' as paid")
        self._paid.add(file_id)

    def is_paid(self, file_id: str) -> bool:
        return file_id in self._paid

    def paid_files(self) -> Set[str]:
        return set(self._paid)
