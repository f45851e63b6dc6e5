"""
Transaction classifier.

Maps a message's sender/subject/body to at most one effect using a fixed,
ordered rule table. Matching is case-insensitive substring matching; the
first rule that fully matches wins.
"""

import logging
import re
from dataclasses import dataclass, replace
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Optional, Sequence, Union

logger = logging.getLogger(__name__)

# "$1,234.56" or "$150"
AMOUNT_PATTERN = re.compile(r"\$([\d,]+(?:\.\d{2})?)")


class ArtifactSource(str, Enum):
    """Where an archived artifact comes from."""
    SUNRUN_PDF_ATTACHMENT = "sunrun_pdf_attachment"
    BILL_PORTAL = "bill_portal"


@dataclass(frozen=True)
class DeleteEvents:
    title_prefix: str
    month_offset: int = 0


@dataclass(frozen=True)
class PatchEvents:
    title_prefix: str
    new_title_template: str
    month_offset: int = 0
    amount: Optional[Decimal] = None

    def render_title(self) -> str:
        return self.new_title_template.format(amount=self.amount)


@dataclass(frozen=True)
class ArchiveArtifact:
    source: ArtifactSource
    folder_path: str


Effect = Union[DeleteEvents, PatchEvents, ArchiveArtifact]


@dataclass(frozen=True)
class AmountBand:
    """Inclusive sanity bounds for an amount; None means unbounded."""
    minimum: Optional[Decimal] = None
    maximum: Optional[Decimal] = None

    def contains(self, amount: Decimal) -> bool:
        if self.minimum is not None and amount < self.minimum:
            return False
        if self.maximum is not None and amount > self.maximum:
            return False
        return True


POSITIVE = AmountBand(minimum=Decimal("0.01"))


@dataclass(frozen=True)
class TransactionRule:
    name: str
    sender_pattern: str
    subject_pattern: str
    effect: Effect
    body_pattern: Optional[str] = None
    amount_band: Optional[AmountBand] = None

    def matches_headers(self, sender: str, subject: str) -> bool:
        return (
            self.sender_pattern.lower() in sender.lower()
            and self.subject_pattern.lower() in subject.lower()
        )

    def matches_body(self, body: str) -> bool:
        return self.body_pattern is None or self.body_pattern.lower() in (body or "").lower()


def extract_amount(subject: str) -> Optional[Decimal]:
    """Return the first dollar amount in the subject, or None."""
    match = AMOUNT_PATTERN.search(subject or "")
    if not match:
        return None
    try:
        return Decimal(match.group(1).replace(",", ""))
    except InvalidOperation:
        return None


def _capital_one(merchant: str, prefix: str) -> TransactionRule:
    return TransactionRule(
        name=f"capital_one_{merchant.lower()}",
        sender_pattern="capitalone.com",
        subject_pattern="withdrawal notice",
        body_pattern=f"{merchant} has initiated",
        effect=DeleteEvents(prefix),
    )


# Evaluated top to bottom; keep more specific rules first
DEFAULT_RULES: Sequence[TransactionRule] = (
    TransactionRule(
        name="chase_card_payment",
        sender_pattern="chase.com",
        subject_pattern="your credit card payment is scheduled",
        effect=DeleteEvents("Pay Chase"),
    ),
    TransactionRule(
        name="chase_mortgage_payment",
        sender_pattern="chase.com",
        subject_pattern="you scheduled your mortgage payment",
        effect=DeleteEvents("Pay mortgage"),
    ),
    TransactionRule(
        name="comcast_xfinity",
        sender_pattern="chase.com",
        subject_pattern="transaction with comcast / xfinity",
        amount_band=AmountBand(Decimal("100"), Decimal("200")),
        effect=DeleteEvents("Comcast / Xfinity Withdrawal"),
    ),
    TransactionRule(
        name="eversource",
        sender_pattern="chase.com",
        subject_pattern="transaction with spi*eversource",
        amount_band=POSITIVE,
        effect=PatchEvents("Pay Gas Bill", "Gas Bill - ${amount}"),
    ),
    _capital_one("ATT", "Pay AT&T"),
    _capital_one("Verizon", "Pay Verizon"),
    _capital_one("Toyota", "Pay Toyota"),
    _capital_one("Progressive", "Pay Progressive"),
    TransactionRule(
        name="amex_payment",
        sender_pattern="americanexpress.com",
        subject_pattern="we received your payment",
        # Amex reminders are scheduled for the following month
        effect=DeleteEvents("Pay Amex", month_offset=1),
    ),
    TransactionRule(
        name="national_grid_bill",
        sender_pattern="nationalgridus.com",
        subject_pattern="bill is ready",
        effect=ArchiveArtifact(ArtifactSource.BILL_PORTAL, "House/National Grid Bills"),
    ),
    TransactionRule(
        name="sunrun_bill",
        sender_pattern="sunrun.com",
        subject_pattern="your sunrun bill",
        effect=ArchiveArtifact(ArtifactSource.SUNRUN_PDF_ATTACHMENT, "House/Sunrun Bills"),
    ),
)


class TransactionClassifier:
    """First-match-wins evaluation of an ordered rule table."""

    def __init__(self, rules: Sequence[TransactionRule] = DEFAULT_RULES):
        self.rules = tuple(rules)

    def classify(self, sender: str, subject: str, body: str = "") -> Optional[Effect]:
        """
        Return the effect of the first fully matching rule, or None.

        A rule with an amount band whose amount is missing or out of band
        makes the whole classification return None instead of falling
        through to a later rule.
        """
        for rule in self.rules:
            if not rule.matches_headers(sender, subject) or not rule.matches_body(body):
                continue

            if rule.amount_band is None:
                logger.info(f"✅ Matched rule '{rule.name}'")
                return rule.effect

            amount = extract_amount(subject)
            if amount is None:
                logger.info(f"No dollar amount found in \"{subject}\"")
                return None
            if not rule.amount_band.contains(amount):
                logger.info(f"Unexpected amount ${amount} for rule '{rule.name}', skipping.")
                return None

            logger.info(f"✅ Matched rule '{rule.name}' with amount ${amount}")
            if isinstance(rule.effect, PatchEvents):
                return replace(rule.effect, amount=amount)
            return rule.effect

        logger.info(f"Ignoring email from \"{sender}\" and subject \"{subject}\"")
        return None
