"""Tests for the escrow adapter: unit conversion and the web3 calls (Web3 patched)."""
from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest
from web3.exceptions import TimeExhausted

from bountyhub.services.escrow import EscrowError, Web3EscrowAdapter, from_base_units, to_base_units

CREATOR = "0x1111111111111111111111111111111111111111"
CONTRIBUTOR = "0x2222222222222222222222222222222222222222"


class TestUnitConversion:

    def test_whole_and_fractional_amounts(self):
        assert to_base_units(Decimal("50")) == 50 * 10 ** 18
        assert to_base_units(Decimal("0.000000000000000001")) == 1
        assert from_base_units(1500000000000000000) == Decimal("1.5")

    def test_excess_precision_rejected(self):
        with pytest.raises(ValueError):
            to_base_units(Decimal("0.0000000000000000001"))

    def test_negative_rejected(self):
        with pytest.raises(ValueError):
            to_base_units(Decimal("-1"))

    def test_custom_decimals(self):
        assert to_base_units(Decimal("2.5"), decimals=6) == 2500000


@pytest.fixture
def web3_mock():
    with patch("bountyhub.services.escrow.Web3") as web3_cls:
        web3_cls.is_address.return_value = True
        web3_cls.to_checksum_address.side_effect = lambda address: address
        w3 = web3_cls.return_value
        w3.eth.account.from_key.return_value.address = "0x9999999999999999999999999999999999999999"
        token, escrow = MagicMock(), MagicMock()
        w3.eth.contract.side_effect = [token, escrow]
        yield w3, token, escrow


@pytest.fixture
def adapter(web3_mock):
    return Web3EscrowAdapter(
        rpc_url="http://localhost:8545",
        private_key="0x" + "ab" * 32,
        token_address="0x" + "44" * 20,
        escrow_address="0x" + "55" * 20,
    )


class TestWeb3EscrowAdapter:

    def test_escrow_balance(self, adapter, web3_mock):
        _, _, escrow = web3_mock
        escrow.functions.escrowBalanceOf.return_value.call.return_value = 5 * 10 ** 18
        assert adapter.escrow_balance_of(CREATOR) == Decimal(5)
        escrow.functions.escrowBalanceOf.assert_called_with(CREATOR)

    def test_deposit_acknowledged(self, adapter, web3_mock):
        _, _, escrow = web3_mock
        escrow.functions.escrowBalanceOf.return_value.call.return_value = 10 * 10 ** 18
        assert adapter.deposit_acknowledged(CREATOR, Decimal("10"))
        assert not adapter.deposit_acknowledged(CREATOR, Decimal("10.5"))

    def test_rpc_failure_raises_escrow_error(self, adapter, web3_mock):
        _, token, _ = web3_mock
        token.functions.balanceOf.return_value.call.side_effect = ConnectionError("refused")
        with pytest.raises(EscrowError):
            adapter.balance_of(CREATOR)

    def test_release_success(self, adapter, web3_mock):
        w3, _, escrow = web3_mock
        w3.eth.get_transaction_count.return_value = 3
        w3.eth.send_raw_transaction.return_value = bytes.fromhex("beef")
        w3.eth.wait_for_transaction_receipt.return_value = {"status": 1, "blockNumber": 77}

        receipt = adapter.release_on_behalf(CREATOR, CONTRIBUTOR, Decimal("1.5"))

        escrow.functions.releaseOnBehalf.assert_called_with(CREATOR, CONTRIBUTOR, 1500000000000000000)
        assert receipt.transaction_hash == "0xbeef"
        assert receipt.block_number == 77
        assert receipt.amount == Decimal("1.5")

    def test_reverted_release(self, adapter, web3_mock):
        w3, _, _ = web3_mock
        w3.eth.send_raw_transaction.return_value = bytes.fromhex("dead")
        w3.eth.wait_for_transaction_receipt.return_value = {"status": 0, "blockNumber": 78}
        with pytest.raises(EscrowError, match="reverted"):
            adapter.release_on_behalf(CREATOR, CONTRIBUTOR, Decimal("1"))

    def test_receipt_timeout(self, adapter, web3_mock):
        w3, _, _ = web3_mock
        w3.eth.send_raw_transaction.return_value = bytes.fromhex("dead")
        w3.eth.wait_for_transaction_receipt.side_effect = TimeExhausted("no receipt")
        with pytest.raises(EscrowError, match="Timed out"):
            adapter.release_on_behalf(CREATOR, CONTRIBUTOR, Decimal("1"))

    def test_release_rejects_excess_precision_before_sending(self, adapter, web3_mock):
        w3, _, _ = web3_mock
        with pytest.raises(EscrowError):
            adapter.release_on_behalf(CREATOR, CONTRIBUTOR, Decimal("0.0000000000000000001"))
        w3.eth.send_raw_transaction.assert_not_called()
