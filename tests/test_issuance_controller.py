"""
Tests for the Issuance Controller (src/issuance_controller.py)

Tests cover:
- Bootstrap mint and supply floor top-up
- Mint factor enforcement and its decay with repeated minting
- Burns, including allowance-based burns
- Authorization transfer carrying statistics
- Cooldowns after early exit
- Guard ordering and atomic rollback
- Persistence round trip
"""

import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from block_clock import ManualBlockClock
from issuance_config import ZERO_ADDRESS
from issuance_events import IssuanceEventType
from issuance_exceptions import (
    CapReachedError,
    CooldownActiveError,
    ExceedsMintFactorError,
    InsufficientAllowanceError,
    InsufficientBalanceError,
    InvalidAmountError,
    InvalidReceiverError,
    NotAuthorizedError,
    TermExpiredError,
    TermNotExpiredError,
)
from issuance_controller import IssuanceController
from monitoring.metrics import metrics

from conftest import SUPPLY_FLOOR, TERM_LENGTH


def activity_events(controller):
    return controller.events.entries(event_type=IssuanceEventType.ISSUER_ACTIVITY)


# ============================================================
# Minting
# ============================================================

class TestBootstrapMint:
    """Tests for minting against zero supply."""

    def test_bootstrap_mints_supply_floor(self, controller, ledger):
        controller.authorize_issuer("0xAlice")

        result = controller.mint("0xAlice", 12_345, caller="0xAlice")

        assert result["bootstrap"] is True
        assert result["minted"] == SUPPLY_FLOOR
        assert ledger.total_supply() == SUPPLY_FLOOR
        assert ledger.balance_of("0xAlice") == SUPPLY_FLOOR
        assert controller.get_issuer_record("0xAlice").total_minted == SUPPLY_FLOOR

    def test_bootstrap_ignores_zero_amount(self, controller):
        controller.authorize_issuer("0xAlice")

        result = controller.mint("0xBob", 0, caller="0xAlice")

        assert result["minted"] == SUPPLY_FLOOR
        assert result["to"] == "0xBob"

    def test_max_mintable_at_zero_supply(self, controller):
        controller.authorize_issuer("0xAlice")

        assert controller.get_issuer_mint_factor("0xAlice") == 100
        assert controller.get_issuer_max_mintable("0xAlice") == SUPPLY_FLOOR

    def test_bootstrap_issuer_factor_collapses(self, bootstrapped):
        """Minting the whole supply once leaves no further allowance."""
        breakdown = bootstrapped.get_issuer_mint_factor_breakdown("0xAlice")

        assert breakdown.avg_percent_mint == 10_000
        assert breakdown.mint_factor == 0
        with pytest.raises(ExceedsMintFactorError):
            bootstrapped.mint("0xAlice", 1, caller="0xAlice")


class TestMintFactorEnforcement:
    """Tests for the per-issuer mint cap."""

    def test_fresh_issuer_bound(self, bootstrapped, ledger):
        bootstrapped.authorize_issuer("0xBob")

        assert bootstrapped.get_issuer_mint_factor("0xBob") == 100
        assert bootstrapped.get_issuer_max_mintable("0xBob") == 10_000

        with pytest.raises(ExceedsMintFactorError) as exc_info:
            bootstrapped.mint("0xBob", 10_001, caller="0xBob")

        assert exc_info.value.max_mintable == 10_000
        assert ledger.total_supply() == SUPPLY_FLOOR

    def test_factor_decays_after_mint(self, bootstrapped, ledger):
        bootstrapped.authorize_issuer("0xBob")

        result = bootstrapped.mint("0xBob", 10_000, caller="0xBob")

        assert result["minted"] == 10_000
        assert result["floor_top_up"] == 0
        assert ledger.total_supply() == 1_010_000
        assert bootstrapped.get_issuer_mint_factor("0xBob") == 2
        assert bootstrapped.get_issuer_max_mintable("0xBob") == 202

    def test_mint_to_other_account(self, bootstrapped, ledger):
        bootstrapped.authorize_issuer("0xBob")

        bootstrapped.mint("0xDave", 500, caller="0xBob")

        assert ledger.balance_of("0xDave") == 500
        assert bootstrapped.get_issuer_record("0xBob").mint_count == 1

    def test_floor_top_up(self, bootstrapped, ledger):
        """A mint that leaves supply under the floor is topped up to exactly the floor."""
        bootstrapped.burn(500_000, caller="0xAlice")
        bootstrapped.authorize_issuer("0xBob")
        assert bootstrapped.get_issuer_max_mintable("0xBob") == 5_000

        result = bootstrapped.mint("0xBob", 1_000, caller="0xBob")

        assert result["floor_top_up"] == 499_000
        assert result["minted"] == 500_000
        assert ledger.total_supply() == SUPPLY_FLOOR
        assert ledger.balance_of("0xBob") == 500_000
        assert bootstrapped.get_issuer_record("0xBob").total_minted == 500_000

    def test_activity_notification(self, bootstrapped):
        bootstrapped.authorize_issuer("0xBob")
        bootstrapped.mint("0xBob", 100, caller="0xBob")

        event = activity_events(bootstrapped)[-1]

        assert event.data["issuer"] == "0xBob"
        assert event.data["minted"] == 100
        assert event.data["total_minted"] == 100
        assert event.data["mint_count"] == 1

    def test_mint_metrics(self, bootstrapped):
        assert metrics.get_counter("mints_total") == 1
        assert metrics.get_counter("units_minted_total") == SUPPLY_FLOOR
        assert metrics.get_gauge("total_supply") == SUPPLY_FLOOR


# ============================================================
# Guard Ordering
# ============================================================

class TestGuards:
    """Rejections happen in a fixed order and leave no trace."""

    def test_non_issuer_checked_before_receiver(self, bootstrapped):
        with pytest.raises(NotAuthorizedError):
            bootstrapped.mint(ZERO_ADDRESS, 1, caller="0xMallory")

    def test_expired_checked_before_amount(self, bootstrapped, clock):
        clock.set_block(TERM_LENGTH)

        with pytest.raises(TermExpiredError):
            bootstrapped.mint("0xAlice", -5, caller="0xAlice")

    def test_receiver_checked_before_amount(self, bootstrapped):
        bootstrapped.authorize_issuer("0xBob")

        with pytest.raises(InvalidReceiverError):
            bootstrapped.mint(ZERO_ADDRESS, -5, caller="0xBob")
        with pytest.raises(InvalidReceiverError):
            bootstrapped.mint(bootstrapped.config.controller_address, 1, caller="0xBob")

    @pytest.mark.parametrize("amount", [0, -1, True, 2.5])
    def test_invalid_amount(self, bootstrapped, amount):
        bootstrapped.authorize_issuer("0xBob")

        with pytest.raises(InvalidAmountError):
            bootstrapped.mint("0xBob", amount, caller="0xBob")

    def test_rejection_counted(self, bootstrapped):
        with pytest.raises(NotAuthorizedError):
            bootstrapped.burn(1, caller="0xMallory")

        assert metrics.get_counter(
            "rejected_operations_total",
            labels={"operation": "burn", "code": "not_authorized"},
        ) == 1

    def test_rejected_mint_leaves_state_untouched(self, bootstrapped):
        bootstrapped.authorize_issuer("0xBob")
        before = bootstrapped.to_dict()

        with pytest.raises(ExceedsMintFactorError):
            bootstrapped.mint("0xBob", 10_001, caller="0xBob")

        assert bootstrapped.to_dict() == before


# ============================================================
# Burning
# ============================================================

class TestBurn:

    def test_burn_updates_stats(self, bootstrapped, ledger):
        result = bootstrapped.burn(250_000, caller="0xAlice")

        assert result["burned"] == 250_000
        assert ledger.total_supply() == 750_000
        record = bootstrapped.get_issuer_record("0xAlice")
        assert (record.total_burned, record.burn_count) == (250_000, 1)

    def test_partial_burn_keeps_factor_at_zero(self, bootstrapped):
        """Burning half of a full-supply mint still leaves the average above base."""
        bootstrapped.burn(500_000, caller="0xAlice")

        breakdown = bootstrapped.get_issuer_mint_factor_breakdown("0xAlice")

        assert breakdown.avg_percent_mint == 20_000
        assert breakdown.burn_offset == 0
        assert breakdown.mint_factor == 0

    def test_burn_more_than_balance(self, bootstrapped):
        with pytest.raises(InsufficientBalanceError):
            bootstrapped.burn(SUPPLY_FLOOR + 1, caller="0xAlice")

    def test_burn_zero_rejected(self, bootstrapped):
        with pytest.raises(InvalidAmountError):
            bootstrapped.burn(0, caller="0xAlice")

    def test_burn_from_with_allowance(self, bootstrapped, ledger):
        ledger.transfer("0xAlice", "0xErin", 1_000)
        ledger.approve("0xErin", "0xAlice", 600)

        result = bootstrapped.burn_from("0xErin", 400, caller="0xAlice")

        assert result["account"] == "0xErin"
        assert ledger.balance_of("0xErin") == 600
        assert ledger.allowance("0xErin", "0xAlice") == 200
        assert bootstrapped.get_issuer_record("0xAlice").total_burned == 400

    def test_burn_from_without_allowance(self, bootstrapped, ledger):
        ledger.transfer("0xAlice", "0xErin", 1_000)

        with pytest.raises(InsufficientAllowanceError):
            bootstrapped.burn_from("0xErin", 1, caller="0xAlice")

    def test_failed_burn_from_rolls_back_allowance(self, bootstrapped, ledger):
        """The allowance spent before the failing burn is restored."""
        bootstrapped.authorize_issuer("0xBob")
        ledger.approve("0xErin", "0xBob", 500)
        events_before = len(bootstrapped.events)

        with pytest.raises(InsufficientBalanceError):
            bootstrapped.burn_from("0xErin", 500, caller="0xBob")

        assert ledger.allowance("0xErin", "0xBob") == 500
        assert len(bootstrapped.events) == events_before
        assert bootstrapped.get_issuer_record("0xBob").burn_count == 0


# ============================================================
# Membership through the controller
# ============================================================

class TestMembership:

    def test_transfer_carries_mint_factor(self, bootstrapped, ledger):
        bootstrapped.authorize_issuer("0xBob")
        bootstrapped.mint("0xBob", 10_000, caller="0xBob")

        result = bootstrapped.transfer_issuer_authorization("0xCarol", caller="0xBob")

        assert result["position"] == 1
        assert result["cooldown_until"] == TERM_LENGTH
        assert bootstrapped.get_issuers() == ["0xAlice", "0xCarol"]
        assert bootstrapped.get_issuer_mint_factor("0xCarol") == 2
        with pytest.raises(NotAuthorizedError):
            bootstrapped.get_issuer_mint_factor("0xBob")

    def test_transfer_requires_issuer(self, controller):
        with pytest.raises(NotAuthorizedError):
            controller.transfer_issuer_authorization("0xCarol", caller="0xBob")

    def test_cap(self, controller):
        for name in ("0xA", "0xB", "0xC"):
            controller.authorize_issuer(name)

        with pytest.raises(CapReachedError):
            controller.authorize_issuer("0xD")

    def test_cooldown_after_early_self_exit(self, controller, clock):
        controller.authorize_issuer("0xAlice")
        clock.set_block(500)

        result = controller.deauthorize_issuer("0xAlice", caller="0xAlice")

        assert result["cooldown_until"] == TERM_LENGTH
        clock.set_block(999)
        with pytest.raises(CooldownActiveError):
            controller.authorize_issuer("0xAlice")
        assert controller.get_cooldown("0xAlice")["active"] is True

        clock.set_block(TERM_LENGTH)
        controller.authorize_issuer("0xAlice")
        assert controller.get_issuer_record("0xAlice").expiration_block == 2 * TERM_LENGTH

    def test_no_cooldown_after_threshold(self, controller, clock):
        controller.authorize_issuer("0xAlice")
        clock.set_block(950)

        result = controller.deauthorize_issuer("0xAlice", caller="0xAlice")

        assert result["cooldown_until"] == 0
        controller.authorize_issuer("0xAlice")

    def test_forced_deauthorization(self, controller, clock):
        controller.authorize_issuer("0xAlice")

        with pytest.raises(TermNotExpiredError):
            controller.deauthorize_issuer("0xAlice", caller="0xBob")

        clock.set_block(TERM_LENGTH)
        controller.deauthorize_issuer("0xAlice", caller="0xBob")
        assert controller.get_issuers() == []

    def test_sweep_removes_all_expired(self, controller, clock):
        for name in ("0xA", "0xB", "0xC"):
            controller.authorize_issuer(name)
        clock.set_block(TERM_LENGTH)

        assert controller.get_expired_issuers() == ["0xA", "0xB", "0xC"]
        removed = controller.deauthorize_all_expired_issuers(caller="0xSweeper")

        assert sorted(removed) == ["0xA", "0xB", "0xC"]
        assert controller.get_issuers() == []
        assert metrics.get_counter("issuer_deauthorizations_total") == 3
        assert metrics.get_gauge("active_issuers") == 0

    def test_mint_factor_query_for_non_member(self, controller):
        with pytest.raises(NotAuthorizedError):
            controller.get_issuer_max_mintable("0xNobody")


# ============================================================
# Queries and Persistence
# ============================================================

class TestQueriesAndPersistence:

    def test_status(self, bootstrapped, clock):
        clock.set_block(10)

        status = bootstrapped.get_status()

        assert status["current_block"] == 10
        assert status["total_supply"] == SUPPLY_FLOOR
        assert status["total_issuers"] == 1
        assert status["max_issuers"] == 3
        assert status["expired_issuers"] == 0

    def test_events_query(self, bootstrapped):
        events = bootstrapped.get_events()

        assert [e["event_type"] for e in events] == ["IssuerAuthorized", "IssuerActivity"]
        assert bootstrapped.get_events(limit=1)[0]["event_type"] == "IssuerActivity"
        assert len(bootstrapped.get_events(event_type=IssuanceEventType.ISSUER_AUTHORIZED)) == 1

    def test_round_trip(self, bootstrapped, config):
        bootstrapped.authorize_issuer("0xBob")
        bootstrapped.mint("0xBob", 1_000, caller="0xBob")
        bootstrapped.deauthorize_issuer("0xBob", caller="0xBob")

        restored = IssuanceController.from_dict(
            bootstrapped.to_dict(), clock=ManualBlockClock(), config=config
        )

        assert restored.to_dict() == bootstrapped.to_dict()
        assert restored.ledger.balance_of("0xBob") == 1_000
        assert restored.get_cooldown("0xBob")["cooldown_until"] == TERM_LENGTH
