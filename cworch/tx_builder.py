"""Building and signing raw transactions for a wallet."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional, Protocol

from .errors import DaemonError

_log = logging.getLogger(__name__)

DEFAULT_MEMO = "Tx committed using cw-orchestrator! ⚙️"

_DENOM = re.compile(r"[a-zA-Z][a-zA-Z0-9/:._-]{2,127}")
_CHAIN_ID = re.compile(r"[a-zA-Z0-9._-]{1,50}")
_U32_MASK = 0xFFFFFFFF

_CHARSET = "qpzry9x8gf2tvdw0s3jn54khce6mua7l"
_GENERATOR = (0x3B6A57B2, 0x26508E6D, 0x1EA119FA, 0x3D4233DD, 0x2A1462B3)
_MAX_ADDRESS_BYTES = 255


def _polymod(values: Iterable[int]) -> int:
    checksum = 1
    for value in values:
        top = checksum >> 25
        checksum = ((checksum & 0x1FFFFFF) << 5) ^ value
        for bit, generator in enumerate(_GENERATOR):
            if (top >> bit) & 1:
                checksum ^= generator
    return checksum


def _validate_account_id(address: str) -> None:
    """Check that an address is valid bech32, raising DaemonError otherwise."""
    error = DaemonError(f"invalid account id: {address!r}")
    if any(not 33 <= ord(c) <= 126 for c in address):
        raise error
    if address.lower() != address and address.upper() != address:
        raise error
    hrp, separator, data_part = address.lower().rpartition("1")
    if not separator or not hrp or len(data_part) < 6:
        raise error
    try:
        data = [_CHARSET.index(c) for c in data_part]
    except ValueError:
        raise error from None
    expanded = [ord(c) >> 5 for c in hrp] + [0] + [ord(c) & 31 for c in hrp]
    if _polymod(expanded + data) != 1:
        raise error
    accumulator = bits = length = 0
    for value in data[:-6]:
        accumulator = ((accumulator << 5) | value) & 0xFFF
        bits += 5
        while bits >= 8:
            bits -= 8
            length += 1
    if bits >= 5 or accumulator & ((1 << bits) - 1):
        raise error
    if length > _MAX_ADDRESS_BYTES:
        raise error


def _checked_chain_id(chain_id: str) -> str:
    if not _CHAIN_ID.fullmatch(chain_id):
        raise DaemonError(f"invalid chain id: {chain_id!r}")
    return chain_id


@dataclass(frozen=True)
class Coin:
    """An amount of a denomination."""

    amount: int
    denom: str

    def __post_init__(self) -> None:
        if not 0 <= self.amount < 2**128:
            raise ValueError(f"coin amount out of range: {self.amount}")
        if not _DENOM.fullmatch(self.denom):
            raise ValueError(f"invalid denom: {self.denom!r}")


@dataclass
class Body:
    """The body of a transaction: messages, memo and timeout height."""

    messages: list[Any] = field(default_factory=list)
    memo: str = ""
    timeout_height: int = 0


@dataclass
class Fee:
    """The fee paid for a transaction."""

    amount: list[Coin]
    gas_limit: int
    payer: Optional[str] = None
    granter: Optional[str] = None


@dataclass
class SenderOptions:
    """Options of a sender that affect the transactions it builds."""

    fee_granter: Optional[str] = None


@dataclass
class SignerInfo:
    """The signer's public key, signing mode and sequence."""

    public_key: Any
    sequence: int
    mode_info: str = "direct"


@dataclass
class AuthInfo:
    """Signers and fee of a transaction."""

    signer_infos: list[SignerInfo]
    fee: Fee


@dataclass
class SignDoc:
    """The document that the wallet signs."""

    body: Body
    auth_info: AuthInfo
    chain_id: str
    account_number: int


class _Account(Protocol):
    account_number: int
    sequence: int


class _Wallet(Protocol):
    options: SenderOptions
    chain_id: str

    async def base_account(self) -> _Account: ...

    async def calculate_gas(self, body: Body, sequence: int, account_number: int) -> int: ...

    def get_fee_from_gas(self, gas: int) -> tuple[int, int]: ...

    def get_fee_token(self) -> str: ...

    def signer_public_key(self) -> Any: ...

    def sign(self, sign_doc: SignDoc) -> Any: ...


@dataclass
class TxBuilder:
    """Builds a raw transaction and signs it with a wallet."""

    body: Body
    fee_amount: Optional[int] = None
    gas_limit: Optional[int] = None
    sequence: Optional[int] = None

    def with_fee_amount(self, fee_amount: int) -> "TxBuilder":
        """Use a fixed fee amount."""
        self.fee_amount = fee_amount
        return self

    def with_gas_limit(self, gas_limit: int) -> "TxBuilder":
        """Use a fixed gas limit."""
        self.gas_limit = gas_limit
        return self

    def with_sequence(self, sequence: int) -> "TxBuilder":
        """Use this sequence instead of the account's."""
        self.sequence = sequence
        return self

    @staticmethod
    def build_body(msgs: Iterable[Any], memo: Optional[str] = None, timeout: int = 0) -> Body:
        """Body with the messages, the memo (or the default one) and timeout height."""
        return Body(
            messages=list(msgs),
            memo=DEFAULT_MEMO if memo is None else memo,
            timeout_height=timeout & _U32_MASK,
        )

    @staticmethod
    def build_fee(
        amount: int, denom: str, gas_limit: int, sender_options: SenderOptions
    ) -> Fee:
        """Fee of one coin, with the sender's fee granter if it has one."""
        coin = Coin(int(amount), denom)
        granter = sender_options.fee_granter
        if granter is not None:
            _validate_account_id(granter)
        return Fee(amount=[coin], gas_limit=gas_limit, granter=granter)

    async def simulate(self, wallet: _Wallet) -> int:
        """Gas needed by the transaction, as simulated by the node."""
        account = await wallet.base_account()
        sequence = account.sequence if self.sequence is None else self.sequence
        return await wallet.calculate_gas(self.body, sequence, account.account_number)

    async def build(self, wallet: _Wallet) -> Any:
        """Build the transaction and sign it.

        Without both a fee amount and a gas limit the gas is simulated, and the
        expected gas is kept as this builder's gas limit.
        """
        account = await wallet.base_account()
        account_number = account.account_number
        sequence = account.sequence if self.sequence is None else self.sequence

        if self.fee_amount is not None and self.gas_limit is not None:
            _log.debug(
                "Using pre-defined fee and gas limits: %s, %s",
                self.fee_amount,
                self.gas_limit,
            )
            tx_fee, gas_limit = self.fee_amount, self.gas_limit
        else:
            gas_used = await wallet.calculate_gas(self.body, sequence, account_number)
            _log.debug("Simulated gas needed %r", gas_used)
            gas_expected, fee_amount = wallet.get_fee_from_gas(gas_used)
            _log.debug("Calculated fee needed: %r", fee_amount)
            self.gas_limit = gas_expected
            tx_fee, gas_limit = fee_amount, gas_expected

        fee = self.build_fee(tx_fee, wallet.get_fee_token(), gas_limit, wallet.options)
        _log.debug(
            "submitting TX: \n fee: %r\naccount_nr: %r\nsequence: %r",
            fee,
            account_number,
            sequence,
        )
        auth_info = AuthInfo(
            signer_infos=[SignerInfo(public_key=wallet.signer_public_key(), sequence=sequence)],
            fee=fee,
        )
        sign_doc = SignDoc(
            body=self.body,
            auth_info=auth_info,
            chain_id=_checked_chain_id(str(wallet.chain_id)),
            account_number=account_number,
        )
        return wallet.sign(sign_doc)