# app/services/link_store.py
"""
In-memory registry of payment links and the payments recorded against them.

Nothing is persisted: a store lives as long as the process (or the app
instance that owns it). There is no locking, concurrent writes to the same
slug are last-write-wins.
"""
import logging
import re
import secrets
import string
import time
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP, localcontext
from typing import Dict, List, Optional

from app.api.models.payment_link import Payment, PaymentLink, PaymentStatus, PaymentTotals
from app.core.config import settings

logger = logging.getLogger(__name__)

BASE36_ALPHABET = string.digits + string.ascii_lowercase
ID_LENGTH = 13
MAX_SLUG_BASE_LENGTH = 50
TWO_PLACES = Decimal("0.01")
# uint256 holds ~1.16e77 token units, i.e. 71 integer digits of USDC
MAX_INTEGER_DIGITS = 71


def to_base36(number: int) -> str:
    """Render a non-negative integer in base 36 (lowercase)."""
    if number < 0:
        raise ValueError("Cannot encode negative numbers in base 36")
    if number == 0:
        return "0"
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(BASE36_ALPHABET[remainder])
    return "".join(reversed(digits))


def generate_id() -> str:
    """Opaque random identifier, 13 base-36 characters."""
    return "".join(secrets.choice(BASE36_ALPHABET) for _ in range(ID_LENGTH))


def _two_places(value: Decimal) -> str:
    with localcontext() as ctx:
        # Room for every integer digit plus the two fraction digits
        ctx.prec = max(ctx.prec, value.adjusted() + 3)
        return str(value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP))


def format_amount(amount) -> str:
    """
    Normalise an amount to a two-fraction-digit decimal string.

    Args:
        amount: str, int, float or Decimal

    Returns:
        e.g. "5.00"

    Raises:
        ValueError: If the amount is not numeric or has more than
        MAX_INTEGER_DIGITS integer digits
    """
    try:
        value = Decimal(str(amount).strip())
    except InvalidOperation:
        raise ValueError(f"Invalid amount: {amount!r}")
    if not value.is_finite() or value.adjusted() >= MAX_INTEGER_DIGITS:
        raise ValueError(f"Invalid amount: {amount!r}")
    return _two_places(value)


def slugify(title: str) -> str:
    """Lowercase, strip punctuation and hyphenate a title."""
    base = title.lower()
    base = re.sub(r"[^a-z0-9\s-]", "", base)
    base = re.sub(r"\s+", "-", base)
    base = re.sub(r"-+", "-", base)
    return base.strip()[:MAX_SLUG_BASE_LENGTH]


def generate_slug(title: str, custom_slug: Optional[str] = None) -> str:
    """
    Build the URL slug for a payment link.

    A custom slug is used verbatim (sample/preset links). Otherwise the title
    is slugified and suffixed with the current time in milliseconds, base 36.
    """
    if custom_slug:
        return custom_slug
    timestamp = to_base36(int(time.time() * 1000))
    return f"{slugify(title)}-{timestamp}"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class PaymentLinkStore:
    """
    Keyed registry of PaymentLink records, slug -> link.

    One instance is created at application start and handed to the request
    handlers; tests build their own.
    """

    def __init__(self):
        self._links: Dict[str, PaymentLink] = {}

    def __len__(self) -> int:
        return len(self._links)

    def __contains__(self, slug: str) -> bool:
        return slug in self._links

    def create_link(
        self,
        title: str,
        amount,
        recipient_address: str,
        description: Optional[str] = None,
        created_by: Optional[str] = None,
        custom_slug: Optional[str] = None,
    ) -> PaymentLink:
        """
        Create and register a new payment link.

        A custom slug that already exists silently replaces the old entry,
        payment history included.

        Raises:
            ValueError: If the amount is not numeric or is negative
        """
        normalized_amount = format_amount(amount)
        if Decimal(normalized_amount) < 0:
            raise ValueError("Amount must not be negative")

        slug = generate_slug(title, custom_slug)
        if not custom_slug:
            # Same title twice within one millisecond
            base_slug, bump = slug, 1
            while slug in self._links:
                slug = f"{base_slug}{to_base36(bump)}"
                bump += 1

        link = PaymentLink(
            id=generate_id(),
            slug=slug,
            title=title,
            description=description,
            amount=normalized_amount,
            recipientAddress=recipient_address,
            createdAt=_now_iso(),
            createdBy=created_by,
            isActive=True,
            payments=[],
        )
        if slug in self._links:
            logger.warning(f"Overwriting existing payment link '{slug}'")
        self._links[slug] = link
        logger.info(f"Created payment link '{slug}' for {normalized_amount} USDC")
        return link

    def get_link(self, slug: str) -> Optional[PaymentLink]:
        return self._links.get(slug)

    def list_links(self) -> List[PaymentLink]:
        """All links in insertion order."""
        return list(self._links.values())

    def add_payment(
        self,
        slug: str,
        payer_address: str,
        amount: str,
        transaction_hash: Optional[str] = None,
        user_op_hash: Optional[str] = None,
        gasless_transaction: bool = False,
    ) -> Payment:
        """
        Record a payment against a link.

        Payments are created already confirmed. For an unknown slug the
        payment is still returned but the store is left untouched.
        """
        payment = Payment(
            id=generate_id(),
            transactionHash=transaction_hash or "",
            userOpHash=user_op_hash,
            payerAddress=payer_address,
            amount=amount,
            timestamp=_now_iso(),
            status=PaymentStatus.CONFIRMED,
            gaslessTransaction=bool(gasless_transaction),
        )

        link = self._links.get(slug)
        if link is None:
            logger.warning(f"Payment {payment.id} not attached: no payment link '{slug}'")
            return payment

        link.payments.append(payment)
        return payment

    def get_payments(self, slug: str) -> List[Payment]:
        link = self._links.get(slug)
        return list(link.payments) if link else []

    def update_payment_status(self, slug: str, payment_id: str, status: PaymentStatus) -> bool:
        """Set the status of one payment. Returns False if link or payment is unknown."""
        for payment in self.get_payments(slug):
            if payment.id == payment_id:
                payment.status = PaymentStatus(status)
                return True
        return False

    def get_totals(self, slug: str) -> PaymentTotals:
        """Count and sum of confirmed payments, total with two decimals."""
        confirmed = [p for p in self.get_payments(slug) if p.status == PaymentStatus.CONFIRMED]
        with localcontext() as ctx:
            ctx.prec = MAX_INTEGER_DIGITS + 2 + len(str(len(confirmed)))
            total = sum((Decimal(p.amount) for p in confirmed), Decimal("0"))
        return PaymentTotals(count=len(confirmed), total=_two_places(total))

    def deactivate(self, slug: str) -> bool:
        link = self._links.get(slug)
        if link is None:
            return False
        link.isActive = False
        logger.info(f"Deactivated payment link '{slug}'")
        return True

    def seed_sample_data(self) -> None:
        """Register the preset sample links when the store is empty."""
        if self._links:
            return

        payee = settings.DEFAULT_PAYEE_ADDRESS
        self.create_link(
            title="Coffee Fund ☕",
            description="Help fuel my coding sessions with coffee!",
            amount="5.00",
            recipient_address=payee,
            custom_slug="coffee-fund",
        )
        self.create_link(
            title="Open Source Contribution 🚀",
            description="Support my open source work on blockchain tools",
            amount="25.00",
            recipient_address=payee,
            custom_slug="open-source-contribution",
        )
        self.create_link(
            title="Bitcoin Whitepaper Download 📄",
            description="Get the original Bitcoin whitepaper by Satoshi Nakamoto",
            amount="0.05",
            recipient_address=payee,
            custom_slug="bitcoin-whitepaper",
        )
