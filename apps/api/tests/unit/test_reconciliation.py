import pytest

from orderdesk.errors import ReconciliationAmbiguous
from orderdesk.services.reconciliation import (
    AmountCandidate,
    candidates_from_text,
    is_suspicious,
    make_candidate,
    rank_candidates,
    reconcile,
    select_candidate,
)


def test_prefixed_candidate_outranks_bare_and_matches_expected():
    candidates = [make_candidate(450_000, "bare"), make_candidate(395_000, "prefixed")]

    decision = reconcile(395_000, candidates)

    assert decision.amount == 395_000
    assert decision.provenance == "prefixed"


def test_tenfold_candidate_is_escalated():
    with pytest.raises(ReconciliationAmbiguous) as exc_info:
        reconcile(100_000, [make_candidate(1_000_000, "bare")])

    ambiguous = exc_info.value
    assert ambiguous.expected_amount == 100_000
    assert ambiguous.candidate_amount == 1_000_000
    assert ambiguous.provenance == "bare"
    assert "differs from expected" in ambiguous.reason


def test_no_candidates_falls_back_to_expected_amount():
    decision = reconcile(240_000, [])

    assert decision.amount == 240_000
    assert decision.provenance == "expected"


def test_candidate_within_relative_tolerance_is_accepted():
    decision = reconcile(400_000, [make_candidate(430_000, "prefixed")])

    assert decision.amount == 430_000


def test_candidate_within_absolute_tolerance_is_accepted():
    # 8000 off is above 10% of 50000 but under the absolute allowance
    decision = reconcile(50_000, [make_candidate(58_000, "keyword")])

    assert decision.amount == 58_000


def test_suspicious_requires_both_tolerances_exceeded():
    assert is_suspicious(100_000, 120_001) is True
    assert is_suspicious(100_000, 110_000) is False
    assert is_suspicious(50_000, 60_000) is False
    assert is_suspicious(50_000, 60_001) is True


def test_also_acceptable_amount_avoids_escalation():
    decision = reconcile(
        240_000, [make_candidate(120_000, "claimed")], also_acceptable=(120_000,)
    )

    assert decision.amount == 120_000
    assert decision.provenance == "claimed"


def test_rank_keeps_best_provenance_per_amount_and_breaks_ties_by_smaller_amount():
    ranked = rank_candidates(
        [
            make_candidate(200_000, "bare"),
            make_candidate(200_000, "keyword"),
            make_candidate(150_000, "keyword"),
            make_candidate(0, "claimed"),
        ]
    )

    assert ranked == [
        AmountCandidate(amount=150_000, confidence=7, provenance="keyword"),
        AmountCandidate(amount=200_000, confidence=7, provenance="keyword"),
    ]


def test_select_candidate_empty():
    assert select_candidate([]) is None


def test_claimed_amount_outranks_slip_text():
    top = select_candidate(
        [make_candidate(235_000, "claimed"), make_candidate(250_000, "prefixed")]
    )

    assert top is not None
    assert top.amount == 235_000


def test_candidates_from_transfer_slip_text():
    text = (
        "Transfer Berhasil\n"
        "Tanggal 18/10/2026\n"
        "Nominal Rp 120.000\n"
        "Ref 20261018123456"
    )

    candidates = candidates_from_text(text)

    assert candidates == [AmountCandidate(amount=120_000, confidence=10, provenance="prefixed")]


def test_candidates_from_text_handles_decimal_suffix_and_rupiah_word():
    candidates = candidates_from_text("Total Rp1.000.000,00 | biaya 2.500 rupiah")

    amounts = {candidate.amount: candidate.provenance for candidate in candidates}
    assert amounts[1_000_000] == "prefixed"
    assert amounts[2_500] == "keyword"


def test_candidates_from_text_ignores_small_numbers_and_empty_text():
    assert candidates_from_text("") == []
    assert candidates_from_text("Rp 500, qty 12") == []


def test_provenance_outranks_ocr_confidence():
    top = select_candidate(
        [
            AmountCandidate(amount=450_000, confidence=95, provenance="bare"),
            AmountCandidate(amount=395_000, confidence=80, provenance="prefixed"),
        ]
    )

    assert top == AmountCandidate(amount=395_000, confidence=80, provenance="prefixed")


def test_ocr_confidence_picks_between_duplicates_of_same_provenance():
    ranked = rank_candidates(
        [
            AmountCandidate(amount=120_000, confidence=40, provenance="keyword"),
            AmountCandidate(amount=120_000, confidence=90, provenance="keyword"),
            AmountCandidate(amount=120_000, confidence=99, provenance="bare"),
        ]
    )

    assert ranked == [AmountCandidate(amount=120_000, confidence=90, provenance="keyword")]
