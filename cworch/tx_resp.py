"""Transaction responses returned by a node and helpers to search their events."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Mapping, Optional, Union

from .errors import CwOrchError, DaemonError

_log = logging.getLogger(__name__)

_DATE = r"([0-9]{4})-([0-9]{1,2})-([0-9]{1,2})T([0-9]{1,2}):([0-9]{1,2}):([0-9]{1,2})"
_FORMAT = re.compile(_DATE + r"(?:\.([0-9]+))?")
_FORMAT_TZ_SUPPLIED = re.compile(_DATE + r"\.([0-9]+)[+-][0-9]{2}:[0-9]{2}")
_FORMAT_SHORT_Z = re.compile(_DATE + "Z")
_FORMAT_SHORT_Z2 = re.compile(_DATE + r"\.([0-9]+)Z")

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _decode_lossy(value: bytes) -> str:
    return value.decode("utf-8", errors="replace")


def _match(pattern: re.Pattern, text: str) -> Optional[datetime]:
    found = pattern.fullmatch(text)
    if found is None:
        return None
    year, month, day, hour, minute, second = (int(g) for g in found.groups()[:6])
    fraction = found.group(7) if pattern.groups >= 7 else None
    microsecond = int((fraction or "")[:6].ljust(6, "0"))
    try:
        return datetime(
            year, month, day, hour, minute, second, microsecond, tzinfo=timezone.utc
        )
    except ValueError:
        return None


def parse_timestamp(s: str) -> datetime:
    """Parse a node timestamp into an aware UTC datetime.

    Any supplied offset is ignored, the clock time is taken as UTC.
    """
    sliced = s[: max(len(s) - 4, 0)] if "." in s else s
    attempts = (
        (_FORMAT, sliced),
        (_FORMAT_TZ_SUPPLIED, s),
        (_FORMAT_SHORT_Z, sliced),
        (_FORMAT_SHORT_Z2, s),
    )
    for pattern, text in attempts:
        parsed = _match(pattern, text)
        if parsed is not None:
            return parsed
    _log.error("DateTime Fail %s", s)
    raise DaemonError(f"could not parse timestamp {s!r}")


@dataclass
class TxResultBlockAttribute:
    """A single attribute of an event."""

    key: str
    value: str


@dataclass
class TxResultBlockEvent:
    """A single event from a transaction and its attributes."""

    s_type: str
    attributes: list[TxResultBlockAttribute] = field(default_factory=list)

    @classmethod
    def from_dict(cls, value: Mapping[str, Any]) -> "TxResultBlockEvent":
        """Build an event from its JSON form (``type`` and ``attributes``)."""
        return cls(
            s_type=value["type"],
            attributes=[
                TxResultBlockAttribute(key=attr["key"], value=attr["value"])
                for attr in value["attributes"]
            ],
        )

    def get_attributes(self, key: str) -> list[TxResultBlockAttribute]:
        """All attributes whose key is ``key``."""
        return [attr for attr in self.attributes if attr.key == key]

    def get_first_attribute_value(self, key: str) -> Optional[str]:
        """Value of the first attribute whose key is ``key``, if any."""
        return next((attr.value for attr in self.attributes if attr.key == key), None)


@dataclass
class TxResultBlockMsg:
    """The events emitted by a single message of a transaction."""

    msg_index: Optional[int]
    events: list[TxResultBlockEvent] = field(default_factory=list)

    @classmethod
    def from_dict(cls, value: Mapping[str, Any]) -> "TxResultBlockMsg":
        """Build a message log from its JSON form; ``msg_index`` may be absent."""
        return cls(
            msg_index=value.get("msg_index"),
            events=[TxResultBlockEvent.from_dict(event) for event in value["events"]],
        )


@dataclass
class AbciEventAttribute:
    """A raw event attribute as sent by the node, key and value as bytes."""

    key: bytes
    value: bytes

    def __post_init__(self) -> None:
        if isinstance(self.key, str):
            self.key = self.key.encode()
        if isinstance(self.value, str):
            self.value = self.value.encode()


@dataclass
class AbciEvent:
    """A raw event as sent by the node."""

    type: str
    attributes: list[AbciEventAttribute] = field(default_factory=list)


def _to_block_msg(log: Union[TxResultBlockMsg, Mapping[str, Any]]) -> TxResultBlockMsg:
    if isinstance(log, TxResultBlockMsg):
        return log
    return TxResultBlockMsg(
        msg_index=int(log.get("msg_index", 0)),
        events=[TxResultBlockEvent.from_dict(e) for e in log.get("events", ())],
    )


def _to_abci_event(event: Union[AbciEvent, Mapping[str, Any]]) -> AbciEvent:
    if isinstance(event, AbciEvent):
        return event
    return AbciEvent(
        type=event["type"],
        attributes=[
            AbciEventAttribute(key=attr["key"], value=attr["value"])
            for attr in event.get("attributes", ())
        ],
    )


@dataclass
class CosmTxResponse:
    """The response from a transaction performed on a blockchain."""

    height: int = 0
    txhash: str = ""
    codespace: str = ""
    code: int = 0
    data: str = ""
    raw_log: str = ""
    logs: list[TxResultBlockMsg] = field(default_factory=list)
    info: str = ""
    gas_wanted: int = 0
    gas_used: int = 0
    timestamp: datetime = _EPOCH
    events: list[AbciEvent] = field(default_factory=list)

    @classmethod
    def from_tx_response(cls, tx: Mapping[str, Any]) -> "CosmTxResponse":
        """Build a response from a node's transaction response mapping."""
        return cls(
            height=int(tx.get("height", 0)),
            txhash=tx.get("txhash", ""),
            codespace=tx.get("codespace", ""),
            code=int(tx.get("code", 0)),
            data=tx.get("data", ""),
            raw_log=tx.get("raw_log", ""),
            logs=[_to_block_msg(log) for log in tx.get("logs", ())],
            info=tx.get("info", ""),
            gas_wanted=int(tx.get("gas_wanted", 0)),
            gas_used=int(tx.get("gas_used", 0)),
            timestamp=parse_timestamp(tx.get("timestamp", "")),
            events=[_to_abci_event(e) for e in tx.get("events", ())],
        )

    def get_attribute_from_logs(
        self, event_type: str, attribute_key: str
    ) -> list[tuple[int, str]]:
        """For each log, the value of the key in its first event of that type.

        Returns pairs of message index and value.
        """
        found = []
        for log in self.logs:
            event = next((e for e in log.events if e.s_type == event_type), None)
            if event is None:
                continue
            value = event.get_first_attribute_value(attribute_key)
            if value is not None:
                found.append((log.msg_index or 0, value))
        return found

    def get_events(self, event_type: str) -> list[TxResultBlockEvent]:
        """Events of a type, from the logs or, if they hold none, from ``events``."""
        from_logs = [
            event
            for log in self.logs
            for event in log.events
            if event.s_type == event_type
        ]
        if from_logs:
            return from_logs
        return [event for event in self.parsed_events() if event.s_type == event_type]

    def parsed_events(self) -> list[TxResultBlockEvent]:
        """The raw events with keys and values decoded as text."""
        return [
            TxResultBlockEvent(
                s_type=event.type,
                attributes=[
                    TxResultBlockAttribute(
                        key=_decode_lossy(attr.key), value=_decode_lossy(attr.value)
                    )
                    for attr in event.attributes
                ],
            )
            for event in self.events
        ]

    def data_binary(self) -> Optional[bytes]:
        """The data field as JSON-encoded bytes, or None when it is empty."""
        if not self.data:
            return None
        return json.dumps(list(self.data.encode()), separators=(",", ":")).encode()

    def event_attr_value(self, event_type: str, attr_key: str) -> str:
        """First value of the key among events of the type."""
        key = attr_key.encode()
        for event in self.events:
            if event.type != event_type:
                continue
            for attr in event.attributes:
                if attr.key == key:
                    return _decode_lossy(attr.value)
        raise CwOrchError(
            f"event of type {event_type} does not have a value at key {attr_key}"
        )

    def event_attr_values(self, event_type: str, attr_key: str) -> list[str]:
        """All values of the key among events of the type."""
        key = attr_key.encode()
        return [
            _decode_lossy(attr.value)
            for event in self.events
            if event.type == event_type
            for attr in event.attributes
            if attr.key == key
        ]