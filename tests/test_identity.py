"""
Tests for transaction identity and reference cleaning.
"""

from datetime import date
from decimal import Decimal

import pytest

from finance_tracker.categories import (
    clean_remittance_info,
    stable_identity,
    summarize_transaction,
)
from finance_tracker.models.transaction import Party, Transaction, TransactionAmount


def make_tx(**overrides) -> Transaction:
    data = {
        "booking_date": date(2024, 3, 5),
        "transaction_amount": TransactionAmount(currency="EUR", amount=Decimal("-12.50")),
        "creditor": Party(name="REWE"),
    }
    data.update(overrides)
    return Transaction(**data)


class TestStableIdentity:
    """Tests for stable_identity()."""

    def test_server_id_is_returned_unmodified(self):
        """A transaction with a server id is known by that id."""
        tx = make_tx(transaction_id="  abc-123 ")
        assert stable_identity(tx) == "  abc-123 "

    def test_derived_identity_format(self):
        """Without a server id the key is composed from date, amount and creditor."""
        assert stable_identity(make_tx()) == "gen_2024-03-05_-12.50_REWE"

    def test_derived_identity_falls_back_to_debtor(self):
        """The debtor name is used when there is no creditor."""
        tx = make_tx(creditor=None, debtor=Party(name="Employer GmbH"))
        assert stable_identity(tx) == "gen_2024-03-05_-12.50_Employer GmbH"

    def test_derived_identity_without_date_or_counterparty(self):
        """Missing parts become empty strings."""
        tx = make_tx(booking_date=None, creditor=None)
        assert stable_identity(tx) == "gen__-12.50_"

    def test_empty_server_id_is_ignored(self):
        """An empty server id does not count as an id."""
        assert stable_identity(make_tx(transaction_id="")).startswith("gen_")

    def test_derived_identity_is_deterministic(self):
        """Equal inputs always give equal identities."""
        assert stable_identity(make_tx()) == stable_identity(make_tx())

    def test_same_day_same_amount_same_counterparty_collide(self):
        """Two distinct transactions with identical key fields share one identity."""
        first = make_tx(remittance_information=["first purchase"])
        second = make_tx(remittance_information=["second purchase"])
        assert stable_identity(first) == stable_identity(second)

    def test_identity_survives_storage_round_trip(self):
        """A cached transaction keeps its derived identity."""
        tx = make_tx()
        restored = Transaction.model_validate(tx.model_dump(mode="json"))
        assert stable_identity(restored) == stable_identity(tx)


class TestCleanRemittanceInfo:
    """Tests for clean_remittance_info()."""

    def test_lines_are_joined_with_spaces(self):
        assert clean_remittance_info(["Rent", "March"]) == "Rent March"

    def test_prefix_is_stripped_case_insensitively(self):
        """The RemittanceInformation: tag is removed."""
        assert clean_remittance_info(["remittanceInformation:  Coffee shop "]) == "Coffee shop"

    def test_empty_input(self):
        assert clean_remittance_info(None) == ""
        assert clean_remittance_info([]) == ""


class TestSummarizeTransaction:
    """Tests for the summary sent to the categorization agent."""

    def test_summary_fields(self):
        summary = summarize_transaction(make_tx(remittance_information=["Groceries"]))
        assert summary == {
            "id": "gen_2024-03-05_-12.50_REWE",
            "creditor": "REWE",
            "debtor": "Unknown",
            "amount": "-12.50",
            "reference": "Groceries",
            "date": "2024-03-05",
        }

    def test_raw_reference_only_when_different(self):
        """The raw reference is included only if cleaning changed it."""
        summary = summarize_transaction(
            make_tx(remittance_information=["RemittanceInformation: Fuel"])
        )
        assert summary["reference"] == "Fuel"
        assert summary["raw_reference"] == "RemittanceInformation: Fuel"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
