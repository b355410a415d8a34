import re
from dataclasses import dataclass

from orderdesk.errors import ReconciliationAmbiguous

PROVENANCE_WEIGHTS: dict[str, int] = {
    "claimed": 20,
    "prefixed": 10,
    "keyword": 7,
    "bare": 1,
}

DEFAULT_RELATIVE_TOLERANCE = 0.10
DEFAULT_ABSOLUTE_TOLERANCE = 10_000

# Amounts below this are dates, reference numbers or noise on transfer slips
_MIN_TEXT_AMOUNT = 1_000

_AMOUNT = r"(\d{1,3}(?:[.,]\d{3})+|\d{4,})(?:[.,]00)?(?!\d)"
_PREFIXED = re.compile(r"(?:rp|idr)\.?\s*" + _AMOUNT, re.IGNORECASE)
_KEYWORD = re.compile(
    r"(?:transfer|pembayaran|nominal|jumlah|total|bayar)\D{0,20}?" + _AMOUNT, re.IGNORECASE
)
_RUPIAH_SUFFIX = re.compile(_AMOUNT + r"\s*rupiah", re.IGNORECASE)
# Ungrouped digit runs are years, account and reference numbers
_BARE = re.compile(r"(?<![\d.,])(\d{1,3}(?:[.,]\d{3})+)(?:[.,]00)?(?!\d)")


@dataclass(frozen=True)
class AmountCandidate:
    amount: int
    confidence: int
    provenance: str


@dataclass(frozen=True)
class ReconciliationDecision:
    amount: int
    provenance: str


def provenance_weight(provenance: str) -> int:
    return PROVENANCE_WEIGHTS.get(provenance, 0)


def make_candidate(
    amount: int, provenance: str, confidence: int | None = None
) -> AmountCandidate:
    """Text-derived candidates carry no OCR score and default to the provenance weight."""
    if confidence is None:
        confidence = provenance_weight(provenance)
    return AmountCandidate(amount=amount, confidence=confidence, provenance=provenance)


def _strength(candidate: AmountCandidate) -> tuple[int, int]:
    return provenance_weight(candidate.provenance), candidate.confidence


def rank_candidates(candidates: list[AmountCandidate]) -> list[AmountCandidate]:
    # OCR confidence only separates candidates of equal provenance for the same amount
    best_by_amount: dict[int, AmountCandidate] = {}
    for candidate in candidates:
        if candidate.amount <= 0:
            continue
        current = best_by_amount.get(candidate.amount)
        if current is None or _strength(candidate) > _strength(current):
            best_by_amount[candidate.amount] = candidate
    return sorted(
        best_by_amount.values(), key=lambda c: (-provenance_weight(c.provenance), c.amount)
    )


def select_candidate(candidates: list[AmountCandidate]) -> AmountCandidate | None:
    ranked = rank_candidates(candidates)
    return ranked[0] if ranked else None


def is_suspicious(
    expected: int,
    candidate: int,
    relative_tolerance: float = DEFAULT_RELATIVE_TOLERANCE,
    absolute_tolerance: int = DEFAULT_ABSOLUTE_TOLERANCE,
) -> bool:
    diff = abs(candidate - expected)
    return diff > expected * relative_tolerance and diff > absolute_tolerance


def reconcile(
    expected: int,
    candidates: list[AmountCandidate],
    *,
    relative_tolerance: float = DEFAULT_RELATIVE_TOLERANCE,
    absolute_tolerance: int = DEFAULT_ABSOLUTE_TOLERANCE,
    also_acceptable: tuple[int, ...] = (),
) -> ReconciliationDecision:
    """Pick the amount to commit for a payment.

    With no candidates the expected amount is used. A top candidate that is
    within tolerance of ``expected`` (or of any ``also_acceptable`` amount)
    is accepted; otherwise ``ReconciliationAmbiguous`` is raised so a human
    can choose.
    """
    top = select_candidate(candidates)
    if top is None:
        return ReconciliationDecision(amount=expected, provenance="expected")

    targets = (expected, *also_acceptable)
    if all(
        is_suspicious(target, top.amount, relative_tolerance, absolute_tolerance)
        for target in targets
    ):
        raise ReconciliationAmbiguous(
            expected_amount=expected,
            candidate_amount=top.amount,
            provenance=top.provenance,
            reason=(
                f"{top.provenance} amount {top.amount} differs from expected "
                f"{expected} by {abs(top.amount - expected)}"
            ),
        )
    return ReconciliationDecision(amount=top.amount, provenance=top.provenance)


def _to_int(raw: str) -> int:
    return int(raw.replace(".", "").replace(",", ""))


def candidates_from_text(text: str) -> list[AmountCandidate]:
    """Pull amount candidates out of OCR'd transfer-slip text."""
    if not text:
        return []

    found: list[AmountCandidate] = []
    for pattern, provenance in (
        (_PREFIXED, "prefixed"),
        (_KEYWORD, "keyword"),
        (_RUPIAH_SUFFIX, "keyword"),
        (_BARE, "bare"),
    ):
        for match in pattern.finditer(text):
            amount = _to_int(match.group(1))
            if amount >= _MIN_TEXT_AMOUNT:
                found.append(make_candidate(amount, provenance))
    return rank_candidates(found)
