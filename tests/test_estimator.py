"""Tests for TokenEstimator."""

from __future__ import annotations

import pytest

from chatgroup.models.history import SimplifiedMessage
from chatgroup.tokens.estimator import TokenEstimator
from tests.conftest import make_simplified


class TestHeuristic:
    def test_empty_history_is_zero(self, estimator):
        assert estimator.estimate_messages([]) == 0

    def test_empty_text_is_zero(self, estimator):
        assert estimator.estimate("") == 0

    def test_formula(self, estimator):
        """(len(sender) + len(content) + 2) // 3 summed before division."""
        messages = [
            SimplifiedMessage(sender="user:alice", content="hello", timestamp="t"),
            SimplifiedMessage(sender="system", content="ok", timestamp="t"),
        ]
        # (10 + 5 + 2) + (6 + 2 + 2) = 27
        assert estimator.estimate_messages(messages) == 9
        assert TokenEstimator.heuristic(messages) == 9

    def test_single_string(self, estimator):
        assert estimator.estimate("x" * 30) == 10

    def test_monotone_in_appended_messages(self, estimator):
        history = [make_simplified(i) for i in range(5)]
        counts = [estimator.estimate_messages(history[: n + 1]) for n in range(len(history))]
        assert counts == sorted(counts)

    def test_force_heuristic_reports_no_tokenizer(self, estimator):
        assert estimator.uses_tokenizer is False


_GROWTH_WORDS = "the planner asked the coder to review the rollout plan before friday".split()


class TestGrowingContent:
    @pytest.mark.parametrize("use_tokenizer", [False, True], ids=["heuristic", "tiktoken"])
    def test_non_decreasing_as_one_message_grows(self, use_tokenizer):
        est = TokenEstimator()
        est._force_heuristic = not use_tokenizer
        counts = []
        for n in range(len(_GROWTH_WORDS) + 1):
            grown = make_simplified(1, content=" ".join(_GROWTH_WORDS[:n]))
            counts.append(est.estimate_messages([make_simplified(0), grown, make_simplified(2)]))
        assert all(a <= b for a, b in zip(counts, counts[1:], strict=False))

    def test_heuristic_grows_character_by_character(self, estimator):
        counts = [
            estimator.estimate_messages([make_simplified(0, content="x" * n)]) for n in range(40)
        ]
        assert all(a <= b for a, b in zip(counts, counts[1:], strict=False))
        assert counts[-1] > counts[0]


class TestTokenizerFallback:
    def test_unknown_encoding_falls_back_to_heuristic(self):
        est = TokenEstimator("no_such_encoding_xyz")
        messages = [make_simplified(0, content="a" * 40)]
        assert est.estimate_messages(messages) == TokenEstimator.heuristic(messages)
        assert est.uses_tokenizer is False

    def test_fallback_is_remembered(self):
        est = TokenEstimator("no_such_encoding_xyz")
        est.estimate("first call")
        assert est._tokenizer_unavailable is True
        assert est.estimate("x" * 9) == 3
