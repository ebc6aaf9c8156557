"""Escrow adapter for the bounty token and escrow contracts.

The service's own ledger identity signs ``releaseOnBehalf`` calls that move
escrowed tokens from a bounty creator to a contributor. Amounts cross this
boundary as ``Decimal`` and are converted to integer base units with an exact
power-of-ten scale; nothing here goes through a float.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Protocol

from web3 import Web3
from web3.exceptions import TimeExhausted, Web3Exception

logger = logging.getLogger(__name__)

DEFAULT_DECIMALS = 18
RELEASE_GAS_LIMIT = 200000

# requests (used by HTTPProvider) raises OSError subclasses on connection failures and timeouts
LEDGER_ERRORS = (Web3Exception, OSError)

TOKEN_ABI = [
    {
        "inputs": [{"internalType": "address", "name": "account", "type": "address"}],
        "name": "balanceOf",
        "outputs": [{"internalType": "uint256", "name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [],
        "name": "decimals",
        "outputs": [{"internalType": "uint8", "name": "", "type": "uint8"}],
        "stateMutability": "view",
        "type": "function",
    },
]

ESCROW_ABI = [
    {
        "inputs": [{"internalType": "address", "name": "account", "type": "address"}],
        "name": "escrowBalanceOf",
        "outputs": [{"internalType": "uint256", "name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [
            {"internalType": "address", "name": "from", "type": "address"},
            {"internalType": "address", "name": "to", "type": "address"},
            {"internalType": "uint256", "name": "amount", "type": "uint256"},
        ],
        "name": "releaseOnBehalf",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
]


class EscrowError(Exception):
    """A ledger call failed, reverted, or timed out."""


@dataclass(frozen=True)
class ReleaseReceipt:
    transaction_hash: str
    amount: Decimal
    block_number: Optional[int]


def to_base_units(amount: Decimal, decimals: int = DEFAULT_DECIMALS) -> int:
    """Convert a token amount to integer base units, rejecting excess precision."""
    amount = Decimal(amount)
    if amount < 0:
        raise ValueError("Token amounts cannot be negative")
    scaled = amount.scaleb(decimals)
    if scaled != scaled.to_integral_value():
        raise ValueError(f"Amount {amount} has more than {decimals} fractional digits")
    return int(scaled)


def from_base_units(value: int, decimals: int = DEFAULT_DECIMALS) -> Decimal:
    return Decimal(int(value)).scaleb(-decimals)


class EscrowAdapter(Protocol):
    """What the bounty and settlement services need from the ledger."""

    @property
    def service_address(self) -> str: ...

    def balance_of(self, address: str) -> Decimal: ...

    def escrow_balance_of(self, address: str) -> Decimal: ...

    def native_balance_of(self, address: str) -> Decimal: ...

    def release_on_behalf(self, from_address: str, to_address: str, amount: Decimal) -> ReleaseReceipt: ...

    def deposit_acknowledged(self, address: str, amount: Decimal) -> bool: ...


class Web3EscrowAdapter:
    """EscrowAdapter backed by web3.py and a JSON-RPC endpoint."""

    def __init__(
        self,
        rpc_url: str,
        private_key: str,
        token_address: str,
        escrow_address: str,
        decimals: int = DEFAULT_DECIMALS,
        request_timeout: float = 30.0,
        tx_timeout: int = 120,
    ):
        self.w3 = Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": request_timeout}))
        self.account = self.w3.eth.account.from_key(private_key)
        self.token_address = Web3.to_checksum_address(token_address)
        self.escrow_address = Web3.to_checksum_address(escrow_address)
        self.token = self.w3.eth.contract(address=self.token_address, abi=TOKEN_ABI)
        self.escrow = self.w3.eth.contract(address=self.escrow_address, abi=ESCROW_ABI)
        self.decimals = decimals
        self.tx_timeout = tx_timeout

    @property
    def service_address(self) -> str:
        return self.account.address

    def _checksum(self, address: str) -> str:
        if not Web3.is_address(address):
            raise EscrowError(f"Invalid address: {address}")
        return Web3.to_checksum_address(address)

    def balance_of(self, address: str) -> Decimal:
        try:
            raw = self.token.functions.balanceOf(self._checksum(address)).call()
        except LEDGER_ERRORS as e:
            raise EscrowError(f"Token balance lookup failed: {e}") from e
        return from_base_units(raw, self.decimals)

    def escrow_balance_of(self, address: str) -> Decimal:
        try:
            raw = self.escrow.functions.escrowBalanceOf(self._checksum(address)).call()
        except LEDGER_ERRORS as e:
            raise EscrowError(f"Escrow balance lookup failed: {e}") from e
        return from_base_units(raw, self.decimals)

    def native_balance_of(self, address: str) -> Decimal:
        try:
            wei = self.w3.eth.get_balance(self._checksum(address))
        except LEDGER_ERRORS as e:
            raise EscrowError(f"Native balance lookup failed: {e}") from e
        return from_base_units(wei, 18)

    def deposit_acknowledged(self, address: str, amount: Decimal) -> bool:
        """True once the escrow contract holds at least ``amount`` for ``address``."""
        return self.escrow_balance_of(address) >= Decimal(amount)

    def release_on_behalf(self, from_address: str, to_address: str, amount: Decimal) -> ReleaseReceipt:
        """Sign and send ``releaseOnBehalf`` and wait for a successful receipt."""
        try:
            units = to_base_units(amount, self.decimals)
        except ValueError as e:
            raise EscrowError(str(e)) from e

        sender = self._checksum(from_address)
        recipient = self._checksum(to_address)
        try:
            nonce = self.w3.eth.get_transaction_count(self.account.address)
            transaction = self.escrow.functions.releaseOnBehalf(sender, recipient, units).build_transaction(
                {
                    "from": self.account.address,
                    "nonce": nonce,
                    "gas": RELEASE_GAS_LIMIT,
                    "gasPrice": self.w3.eth.gas_price,
                }
            )
            signed = self.account.sign_transaction(transaction)
            tx_hash = self.w3.eth.send_raw_transaction(signed.raw_transaction)
            receipt = self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=self.tx_timeout)
        except TimeExhausted as e:
            raise EscrowError(f"Timed out waiting for release receipt after {self.tx_timeout}s") from e
        except LEDGER_ERRORS as e:
            raise EscrowError(f"Release transaction failed: {e}") from e

        tx_hash_hex = tx_hash.hex() if hasattr(tx_hash, "hex") else str(tx_hash)
        if not tx_hash_hex.startswith("0x"):
            tx_hash_hex = "0x" + tx_hash_hex
        if receipt["status"] != 1:
            logger.error("Release transaction %s reverted", tx_hash_hex)
            raise EscrowError(f"Release transaction {tx_hash_hex} reverted")

        logger.info("Released %s from %s to %s in tx %s", amount, sender, recipient, tx_hash_hex)
        return ReleaseReceipt(
            transaction_hash=tx_hash_hex,
            amount=Decimal(amount),
            block_number=receipt.get("blockNumber"),
        )
