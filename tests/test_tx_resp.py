import json
from datetime import datetime, timezone

import pytest

from cworch.errors import CwOrchError, DaemonError
from cworch.tx_resp import (
    AbciEvent,
    AbciEventAttribute,
    CosmTxResponse,
    TxResultBlockAttribute,
    TxResultBlockEvent,
    TxResultBlockMsg,
    parse_timestamp,
)


def make_tx():
    return {
        "height": 42,
        "txhash": "ABCDEF",
        "codespace": "",
        "code": 0,
        "data": "",
        "raw_log": "[]",
        "logs": [
            {
                "msg_index": 0,
                "events": [
                    {
                        "type": "wasm",
                        "attributes": [
                            {"key": "_contract_address", "value": "contract0"},
                            {"key": "action", "value": "first"},
                        ],
                    },
                    {
                        "type": "wasm",
                        "attributes": [
                            {"key": "_contract_address", "value": "ignored"}
                        ],
                    },
                ],
            },
            {
                "msg_index": 1,
                "events": [
                    {
                        "type": "wasm",
                        "attributes": [
                            {"key": "_contract_address", "value": "contract1"}
                        ],
                    }
                ],
            },
        ],
        "info": "",
        "gas_wanted": 200000,
        "gas_used": 150000,
        "timestamp": "2023-03-01T12:34:56Z",
        "events": [
            {"type": "message", "attributes": [{"key": b"sender", "value": b"sender0"}]},
            {
                "type": "wasm",
                "attributes": [
                    {"key": b"action", "value": b"first"},
                    {"key": b"action", "value": b"second"},
                ],
            },
        ],
    }


def test_parse_timestamp_short_z():
    assert parse_timestamp("2023-03-01T12:34:56Z") == datetime(
        2023, 3, 1, 12, 34, 56, tzinfo=timezone.utc
    )


def test_parse_timestamp_nanoseconds():
    parsed = parse_timestamp("2023-03-01T12:34:56.123456789Z")
    assert parsed == datetime(2023, 3, 1, 12, 34, 56, 123456, tzinfo=timezone.utc)


def test_parse_timestamp_offset_is_ignored():
    parsed = parse_timestamp("2023-03-01T12:34:56.5+02:00")
    assert (parsed.hour, parsed.minute, parsed.second) == (12, 34, 56)
    assert parsed.microsecond == 500000
    assert parsed.tzinfo == timezone.utc


@pytest.mark.parametrize("text", ["not a date", "", "2023-13-01T00:00:00Z"])
def test_parse_timestamp_errors(text):
    with pytest.raises(DaemonError):
        parse_timestamp(text)


def test_from_tx_response_fields():
    resp = CosmTxResponse.from_tx_response(make_tx())
    assert resp.height == 42
    assert resp.txhash == "ABCDEF"
    assert resp.gas_wanted == 200000
    assert resp.gas_used == 150000
    assert resp.timestamp == parse_timestamp("2023-03-01T12:34:56Z")
    assert [log.msg_index for log in resp.logs] == [0, 1]
    assert resp.events[0] == AbciEvent(
        "message", [AbciEventAttribute(b"sender", b"sender0")]
    )


def test_from_tx_response_bad_timestamp():
    tx = make_tx()
    tx["timestamp"] = "garbage"
    with pytest.raises(DaemonError):
        CosmTxResponse.from_tx_response(tx)


def test_get_attribute_from_logs_uses_first_event_per_log():
    resp = CosmTxResponse.from_tx_response(make_tx())
    assert resp.get_attribute_from_logs("wasm", "_contract_address") == [
        (0, "contract0"),
        (1, "contract1"),
    ]
    assert resp.get_attribute_from_logs("wasm", "missing") == []


def test_get_attribute_from_logs_missing_index_defaults_to_zero():
    msg = TxResultBlockMsg.from_dict(
        {"events": [{"type": "t", "attributes": [{"key": "k", "value": "v"}]}]}
    )
    resp = CosmTxResponse(logs=[msg])
    assert msg.msg_index is None
    assert resp.get_attribute_from_logs("t", "k") == [(0, "v")]


def test_get_events_from_logs():
    resp = CosmTxResponse.from_tx_response(make_tx())
    events = resp.get_events("wasm")
    assert len(events) == 3
    assert all(event.s_type == "wasm" for event in events)


def test_get_events_falls_back_to_raw_events():
    resp = CosmTxResponse.from_tx_response(make_tx())
    events = resp.get_events("message")
    assert events == [
        TxResultBlockEvent("message", [TxResultBlockAttribute("sender", "sender0")])
    ]


def test_parsed_events_decode_lossy():
    resp = CosmTxResponse(events=[AbciEvent("e", [AbciEventAttribute(b"k", b"\xff")])])
    parsed = resp.parsed_events()
    assert parsed[0].attributes[0].value == "\ufffd"
    assert parsed[0].attributes[0].key == "k"


def test_data_binary():
    assert CosmTxResponse(data="").data_binary() is None
    encoded = CosmTxResponse(data="hi").data_binary()
    assert json.loads(encoded) == list(b"hi")


def test_event_attr_value_and_values():
    resp = CosmTxResponse.from_tx_response(make_tx())
    assert resp.event_attr_value("wasm", "action") == "first"
    assert resp.event_attr_values("wasm", "action") == ["first", "second"]
    assert resp.event_attr_values("wasm", "nothing") == []


def test_event_attr_value_missing():
    resp = CosmTxResponse.from_tx_response(make_tx())
    with pytest.raises(CwOrchError, match="event of type wasm does not have a value at key nothing"):
        resp.event_attr_value("wasm", "nothing")


def test_event_helpers():
    event = TxResultBlockEvent.from_dict(
        {
            "type": "transfer",
            "attributes": [
                {"key": "amount", "value": "1"},
                {"key": "amount", "value": "2"},
                {"key": "other", "value": "x"},
            ],
        }
    )
    assert [a.value for a in event.get_attributes("amount")] == ["1", "2"]
    assert event.get_first_attribute_value("amount") == "1"
    assert event.get_first_attribute_value("missing") is None


def test_msg_from_dict_requires_events():
    with pytest.raises(KeyError):
        TxResultBlockMsg.from_dict({"msg_index": 0})