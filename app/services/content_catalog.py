# app/services/content_catalog.py
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from app.core.config import settings

logger = logging.getLogger(__name__)


BITCOIN_WHITEPAPER_TEXT = """Bitcoin: A Peer-to-Peer Electronic Cash System
Satoshi Nakamoto

Abstract. A purely peer-to-peer version of electronic cash would allow online
payments to be sent directly from one party to another without going through a
financial institution. Digital signatures provide part of the solution, but the
main benefits are lost if a trusted third party is still required to prevent
double-spending. We propose a solution to the double-spending problem using a
peer-to-peer network. The network timestamps transactions by hashing them into
an ongoing chain of hash-based proof-of-work, forming a record that cannot be
changed without redoing the proof-of-work. The longest chain not only serves as
proof of the sequence of events witnessed, but proof that it came from the
largest pool of CPU power. As long as a majority of CPU power is controlled by
nodes that are not cooperating to attack the network, they'll generate the
longest chain and outpace attackers. The network itself requires minimal
structure. Messages are broadcast on a best effort basis, and nodes can leave
and rejoin the network at will, accepting the longest proof-of-work chain as
proof of what happened while they were gone.
"""

README_TEXT = """x402 Payment Links demo

Request a protected file with GET /api/download/{fileId}. A 402 response
carries X-402-Amount, X-402-Currency and X-402-Address headers describing the
payment. Send the payment, POST the transaction hash back to the same URL and
request the file again.
"""


@dataclass
class ContentItem:
    """A downloadable file and the price gating it."""
    id: str
    name: str
    description: str
    price: str
    currency: str
    address: str
    requires_payment: bool
    content_type: str
    content: bytes

    @property
    def is_paywalled(self) -> bool:
        return self.requires_payment and self.price != "0"


def default_items() -> List[ContentItem]:
    payee = settings.DEFAULT_PAYEE_ADDRESS
    return [
        ContentItem(
            id="bitcoin-whitepaper",
            name="bitcoin-whitepaper.txt",
            description="The original Bitcoin whitepaper by Satoshi Nakamoto - A Peer-to-Peer Electronic Cash System",
            price="0.05",
            currency="USDC",
            address=payee,
            requires_payment=True,
            content_type="text/plain",
            content=BITCOIN_WHITEPAPER_TEXT.encode("utf-8"),
        ),
        ContentItem(
            id="readme",
            name="README.txt",
            description="How the x402 download flow works",
            price="0",
            currency="USDC",
            address=payee,
            requires_payment=False,
            content_type="text/plain",
            content=README_TEXT.encode("utf-8"),
        ),
    ]


class ContentCatalog:
    """Files that can be downloaded, keyed by file id."""

    def __init__(self, items: Optional[List[ContentItem]] = None):
        self._items: Dict[str, ContentItem] = {}
        for item in default_items() if items is None else items:
            self.add(item)

    def add(self, item: ContentItem) -> None:
        self._items[item.id] = item

    def get(self, file_id: str) -> Optional[ContentItem]:
        return self._items.get(file_id)

    def list(self) -> List[ContentItem]:
        return list(self._items.values())
