"""
Millstone — Ledger Config and Clock Tests
===========================================
Precision rules, settings parsing and the injectable clock.
"""

from datetime import datetime, timedelta, timezone
from decimal import ROUND_DOWN, Decimal

import pytest

from core.config.rules import DEFAULT_LEDGER_CONFIG, LedgerConfig
from core.time.clock import (
    FixedClock,
    SystemClock,
    get_default_clock,
    now_utc,
    set_default_clock,
)

NOW = datetime(2026, 2, 20, 12, 0, 0, tzinfo=timezone.utc)


# ══════════════════════════════════════════════════════════════
# LEDGER CONFIG
# ══════════════════════════════════════════════════════════════

class TestLedgerConfig:
    def test_defaults(self):
        config = LedgerConfig()
        assert config.cost_places == 4
        assert config.money_places == 2
        assert config.legacy_name_matching is True
        assert config.lot_prefix == "LOT"

    def test_cost_rounds_half_up(self):
        assert DEFAULT_LEDGER_CONFIG.cost(Decimal("1.23455")) == Decimal("1.2346")
        assert DEFAULT_LEDGER_CONFIG.cost(Decimal("1.23454")) == Decimal("1.2345")

    def test_money_and_percent(self):
        assert DEFAULT_LEDGER_CONFIG.money(Decimal("10.005")) == Decimal("10.01")
        assert DEFAULT_LEDGER_CONFIG.percent(Decimal("94.444")) == Decimal("94.44")

    def test_quantity_keeps_three_places(self):
        assert DEFAULT_LEDGER_CONFIG.quantity(Decimal("29.99951")) == Decimal("30.000")

    def test_fit_quantity_only_rounds_excess_places(self):
        assert DEFAULT_LEDGER_CONFIG.fit_quantity(Decimal("1.23456789")) == Decimal("1.235")
        assert str(DEFAULT_LEDGER_CONFIG.fit_quantity(Decimal("50"))) == "50"
        assert str(DEFAULT_LEDGER_CONFIG.fit_quantity(Decimal("0.25"))) == "0.25"
        assert LedgerConfig(quantity_places=0).fit_quantity(Decimal("2.5")) == Decimal("3")

    def test_round_down_mode(self):
        config = LedgerConfig(rounding=ROUND_DOWN)
        assert config.cost(Decimal("1.99999")) == Decimal("1.9999")

    def test_rejects_unknown_rounding(self):
        with pytest.raises(ValueError, match="rounding"):
            LedgerConfig(rounding="ROUND_BANKERS")

    def test_rejects_negative_places(self):
        with pytest.raises(ValueError, match="cost_places"):
            LedgerConfig(cost_places=-1)

    def test_rejects_empty_lot_prefix(self):
        with pytest.raises(ValueError, match="lot_prefix"):
            LedgerConfig(lot_prefix="")

    def test_from_mapping_none_is_default(self):
        assert LedgerConfig.from_mapping(None) == LedgerConfig()

    def test_from_mapping_reads_settings(self):
        config = LedgerConfig.from_mapping({"cost_places": 6, "legacy_name_matching": False})
        assert config.cost_places == 6
        assert config.legacy_name_matching is False

    def test_from_mapping_rejects_typos(self):
        with pytest.raises(ValueError, match="cost_place"):
            LedgerConfig.from_mapping({"cost_place": 6})

    def test_to_dict_feeds_from_mapping(self):
        config = LedgerConfig(currency="USD", lot_prefix="L")
        assert LedgerConfig.from_mapping(config.to_dict()) == config


# ══════════════════════════════════════════════════════════════
# CLOCK
# ══════════════════════════════════════════════════════════════

class TestFixedClock:
    def test_returns_fixed_time(self):
        clock = FixedClock(NOW)
        assert clock.now_utc() == NOW
        assert clock.now_utc() == NOW

    def test_rejects_naive_datetime(self):
        with pytest.raises(ValueError, match="timezone-aware"):
            FixedClock(datetime(2026, 2, 20, 12, 0))

    def test_advance(self):
        clock = FixedClock(NOW)
        assert clock.advance(hours=2) == NOW + timedelta(hours=2)
        assert clock.now_utc() == NOW + timedelta(hours=2)

    def test_cannot_move_backwards(self):
        clock = FixedClock(NOW)
        with pytest.raises(ValueError, match="backwards"):
            clock.advance(minutes=-1)


class TestDefaultClock:
    def test_system_clock_is_utc(self):
        assert SystemClock().now_utc().tzinfo == timezone.utc

    def test_override_default(self):
        previous = get_default_clock()
        try:
            set_default_clock(FixedClock(NOW))
            assert now_utc() == NOW
        finally:
            set_default_clock(previous)
