"""Tests for the classifier phase ordering."""

from __future__ import annotations

from unittest.mock import Mock

from janitor.classify.classifier import Disposition, FilterChain, classify
from janitor.classify.filters import PassContext
from janitor.models.identity import Identity


def yes(*args):
    return True


def no(*args):
    return False


class TestClassify:
    """Test suite for classify()."""

    identity = Identity(id="r-1", kind="fake")

    def test_no_filters_is_compliant(self) -> None:
        """Test no filters is compliant."""
        assert classify(self.identity, {}) is Disposition.COMPLIANT

    def test_ignore_wins_over_compliance(self) -> None:
        """Test ignore wins over compliance."""
        result = classify(self.identity, {}, ignore_filters=[yes], compliance_filters=[yes])

        assert result is Disposition.IGNORE

    def test_typed_ignore_wins_over_compliance(self) -> None:
        """Test typed ignore wins over compliance."""
        result = classify(self.identity, {}, typed_ignore_filters=[yes], compliance_filters=[yes])

        assert result is Disposition.IGNORE

    def test_compliance_match_is_non_compliant(self) -> None:
        """Test compliance match is non compliant."""
        result = classify(self.identity, {}, ignore_filters=[no], compliance_filters=[no, yes])

        assert result is Disposition.NON_COMPLIANT

    def test_typed_compliance_match_is_non_compliant(self) -> None:
        """Test typed compliance match is non compliant."""
        result = classify(self.identity, {}, compliance_filters=[no], typed_compliance_filters=[yes])

        assert result is Disposition.NON_COMPLIANT

    def test_short_circuits_within_phase(self) -> None:
        """Test short circuits within phase."""
        later = Mock(return_value=True)

        classify(self.identity, {}, ignore_filters=[yes, later])

        later.assert_not_called()

    def test_compliance_not_evaluated_when_ignored(self) -> None:
        """Test compliance not evaluated when ignored."""
        compliance = Mock(return_value=True)

        classify(self.identity, {}, ignore_filters=[yes], compliance_filters=[compliance])

        compliance.assert_not_called()

    def test_typed_filters_receive_raw_and_context(self) -> None:
        """Test typed filters receive raw and context."""
        typed = Mock(return_value=False)
        raw = {"InstanceId": "i-1"}
        context = PassContext(referenced_ids=frozenset({"sg-1"}))

        classify(self.identity, raw, typed_ignore_filters=[typed], context=context)

        typed.assert_called_once_with(raw, context)

    def test_default_context_supplied(self) -> None:
        """Test default context supplied."""
        typed = Mock(return_value=False)

        classify(self.identity, {}, typed_compliance_filters=[typed])

        assert isinstance(typed.call_args[0][1], PassContext)


class TestFilterChain:
    def test_chain_delegates_in_order(self) -> None:
        """Test chain delegates in order."""
        chain = FilterChain(ignore=[no], typed_ignore=[no], compliance=[no], typed_compliance=[yes])

        assert chain.classify(Identity(id="r-1", kind="fake"), {}) is Disposition.NON_COMPLIANT

    def test_empty_chain_is_compliant(self) -> None:
        """Test empty chain is compliant."""
        assert FilterChain().classify(Identity(id="r-1", kind="fake"), {}) is Disposition.COMPLIANT
