"""Tests for fee settlement strategies — prepaid vs. pay-as-you-go."""

import pytest

from amloracle.errors import InsufficientBalance, InvalidClient
from amloracle.ledger.custody import NATIVE_ASSET, InMemoryAssetBook
from amloracle.ledger.escrow import EscrowLedger
from amloracle.ledger.settlement import (
    FeeSettlement,
    PayAsYouGoSettlement,
    PrepaidSettlement,
    SettlementSource,
)


REGISTRY = "0xRegistry"
CLIENT = "0xClient"
FEES = "0xFees"


@pytest.fixture
def book() -> InMemoryAssetBook:
    b = InMemoryAssetBook()
    b.mint(NATIVE_ASSET, CLIENT, 1_000)
    return b


@pytest.fixture
def ledger(book: InMemoryAssetBook) -> EscrowLedger:
    return EscrowLedger(book, NATIVE_ASSET, REGISTRY)


class TestProtocol:
    def test_both_strategies_conform(
        self, ledger: EscrowLedger, book: InMemoryAssetBook,
    ) -> None:
        assert isinstance(PrepaidSettlement(ledger), FeeSettlement)
        assert isinstance(PayAsYouGoSettlement(ledger, book), FeeSettlement)


class TestPrepaid:
    def test_fee_drawn_from_escrow(self, ledger: EscrowLedger) -> None:
        ledger.deposit(CLIENT, CLIENT, 100)
        receipt = PrepaidSettlement(ledger).settle_fee(CLIENT, FEES, 100)
        assert receipt.source == SettlementSource.ESCROW
        assert receipt.amount == 100
        assert ledger.balance_of(CLIENT) == 0
        assert ledger.balance_of(FEES) == 100

    def test_insufficient_escrow(self, ledger: EscrowLedger) -> None:
        ledger.deposit(CLIENT, CLIENT, 99)
        with pytest.raises(InsufficientBalance):
            PrepaidSettlement(ledger).settle_fee(CLIENT, FEES, 100)
        assert ledger.balance_of(CLIENT) == 99

    def test_external_balance_untouched(
        self, ledger: EscrowLedger, book: InMemoryAssetBook,
    ) -> None:
        ledger.deposit(CLIENT, CLIENT, 100)
        PrepaidSettlement(ledger).settle_fee(CLIENT, FEES, 50)
        assert book.balance_of(NATIVE_ASSET, CLIENT) == 900


class TestPayAsYouGo:
    def test_fee_pulled_from_external_balance(
        self, ledger: EscrowLedger, book: InMemoryAssetBook,
    ) -> None:
        receipt = PayAsYouGoSettlement(ledger, book).settle_fee(CLIENT, FEES, 100)
        assert receipt.source == SettlementSource.EXTERNAL
        assert book.balance_of(NATIVE_ASSET, CLIENT) == 900
        assert ledger.balance_of(FEES) == 100
        assert ledger.held_balance() == 100
        assert ledger.total_escrowed() == ledger.held_balance()

    def test_payer_escrow_untouched(
        self, ledger: EscrowLedger, book: InMemoryAssetBook,
    ) -> None:
        ledger.deposit(CLIENT, CLIENT, 200)
        PayAsYouGoSettlement(ledger, book).settle_fee(CLIENT, FEES, 100)
        assert ledger.balance_of(CLIENT) == 200
        assert book.balance_of(NATIVE_ASSET, CLIENT) == 700

    def test_zero_fee_moves_nothing(
        self, ledger: EscrowLedger, book: InMemoryAssetBook,
    ) -> None:
        receipt = PayAsYouGoSettlement(ledger, book).settle_fee(CLIENT, FEES, 0)
        assert receipt.amount == 0
        assert book.balance_of(NATIVE_ASSET, CLIENT) == 1_000
        assert ledger.accounts() == {}

    def test_insufficient_external_balance(
        self, ledger: EscrowLedger, book: InMemoryAssetBook,
    ) -> None:
        with pytest.raises(InsufficientBalance, match="External balance"):
            PayAsYouGoSettlement(ledger, book).settle_fee(CLIENT, FEES, 1_001)
        assert ledger.balance_of(FEES) == 0

    def test_registry_cannot_pay_itself(
        self, ledger: EscrowLedger, book: InMemoryAssetBook,
    ) -> None:
        book.mint(NATIVE_ASSET, REGISTRY, 50)
        with pytest.raises(InvalidClient, match="own custody"):
            PayAsYouGoSettlement(ledger, book).settle_fee(REGISTRY, FEES, 10)
        assert ledger.total_escrowed() == 0
        assert ledger.held_balance() == 50
