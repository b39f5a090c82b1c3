# cworch

Helpers for scripting transactions against CosmWasm chains. The package has
no dependencies outside the standard library.

- `cworch.tx_builder` assembles a transaction body, computes its fee and gas
  limit (from fixed values or a simulation done by a wallet) and has the
  wallet sign it.
- `cworch.tx_resp` turns a node's transaction response into a
  `CosmTxResponse`, with lookups over its logs and events.
- `cworch.snapshots` turns raw contract storage into readable key/value
  strings.
- `cworch.errors` holds the `CwOrchError` and `DaemonError` exceptions;
  `DaemonError` is a subclass of `CwOrchError`.

## Installation

```
pip install .
```

For the test suite:

```
pip install ".[test]"
pytest
```

## Building a transaction

```python
from cworch.tx_builder import SenderOptions, TxBuilder

body = TxBuilder.build_body(msgs, memo=None, timeout=0)
builder = TxBuilder(body).with_fee_amount(5_000).with_gas_limit(200_000)
signed = await builder.build(wallet)
```

`build_body` uses the default memo `DEFAULT_MEMO` when `memo` is `None`, and
keeps the timeout height to 32 bits. `with_fee_amount`, `with_gas_limit` and
`with_sequence` set fixed values and return the builder.

`build_fee(amount, denom, gas_limit, sender_options)` returns a `Fee` of one
`Coin`. A `Coin` with an amount outside the 128-bit unsigned range or an
invalid denomination raises `ValueError`; a `fee_granter` in the
`SenderOptions` that is not a valid bech32 address raises `DaemonError`.

`build` and `simulate` are coroutines that work with any wallet object
offering:

- `options` (a `SenderOptions`) and `chain_id`;
- `async base_account()`, returning an object with `account_number` and
  `sequence`;
- `async calculate_gas(body, sequence, account_number)`, returning the gas used;
- `get_fee_from_gas(gas)`, returning `(gas_expected, fee_amount)`;
- `get_fee_token()`, returning the fee denomination;
- `signer_public_key()` and `sign(sign_doc)`.

The builder's own sequence, when set, replaces the account's. When a fee
amount and a gas limit are not both set, `build` has the wallet simulate the
body, derives the fee from the simulated gas, and keeps the expected gas as
the builder's gas limit for later transactions. It then assembles
`SignerInfo`, `AuthInfo` and `SignDoc` and returns whatever `wallet.sign`
returns. An invalid chain id raises `DaemonError`. `simulate` returns the
simulated gas alone.

## Reading a transaction response

```python
from cworch.tx_resp import CosmTxResponse

resp = CosmTxResponse.from_tx_response(tx)
resp.get_attribute_from_logs("wasm", "_contract_address")  # [(msg_index, value), ...]
resp.event_attr_value("instantiate", "code_id")
```

`from_tx_response` takes a mapping with the node's fields (`height`,
`txhash`, `code`, `logs`, `events`, `timestamp`, ...); logs and events may be
given as mappings or as `TxResultBlockMsg` and `AbciEvent` objects.

- `get_events(event_type)` returns the matching events from the logs, or,
  when the logs hold none, from the raw `events`.
- `parsed_events()` returns the raw events with keys and values decoded as
  text.
- `event_attr_value` returns the first value of a key among events of a
  type and raises `CwOrchError` when there is none; `event_attr_values`
  returns all of them.
- `data_binary()` returns the `data` field encoded as a JSON list of bytes,
  or `None` when it is empty.

`parse_timestamp` accepts the timestamp shapes that nodes return, with or
without fractional seconds, a trailing `Z` or an offset (the offset is
ignored and the clock time taken as UTC). It returns an aware UTC `datetime`
and raises `DaemonError` for anything else.

## Storage snapshots

```python
from cworch.snapshots import parse_storage

parse_storage([(b"count", b"1")])  # [("count", "1")]
```

Invalid UTF-8 is replaced rather than rejected.

## What the package does not do

It does not connect to nodes, query accounts, hold keys, sign or broadcast
transactions itself: those are the job of the wallet object passed to
`TxBuilder.build` and `TxBuilder.simulate`. It has no command-line tool and
no contract test environment.