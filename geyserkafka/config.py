"""Configuration loading and gRPC subscribe-request building."""

from __future__ import annotations

import enum
import json
import re
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Any, Callable, TypeVar, Union

import yaml

U64_MAX = 2**64 - 1

T = TypeVar("T")
_MISSING = object()


class ConfigError(ValueError):
    """Raised when a configuration cannot be read or is invalid."""


# ---------------------------------------------------------------- loading

_JSON_COMMENTS = re.compile(r'"(?:\\.|[^"\\])*"|//[^\n]*|/\*.*?\*/', re.S)
_JSON_TRAILING_COMMAS = re.compile(r'"(?:\\.|[^"\\])*"|,(?=\s*[}\]])', re.S)


def _keep_strings(match: re.Match[str]) -> str:
    text = match.group(0)
    return text if text.startswith('"') else ""


def _relaxed_json(text: str) -> Any:
    cleaned = _JSON_COMMENTS.sub(_keep_strings, text)
    cleaned = _JSON_TRAILING_COMMAS.sub(_keep_strings, cleaned)
    return json.loads(cleaned)


def load(path: str | Path) -> Any:
    """Read a YAML or JSON (comments and trailing commas allowed) config file."""
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as error:
        raise ConfigError("failed to read config from file") from error

    extension = path.suffix[1:] or None
    if extension in ("yaml", "yml"):
        try:
            return yaml.safe_load(text)
        except yaml.YAMLError as error:
            raise ConfigError("failed to parse config from file") from error
    if extension == "json":
        try:
            return _relaxed_json(text)
        except json.JSONDecodeError as error:
            raise ConfigError("failed to parse config from file") from error
    raise ConfigError(f"unknown config extension: {extension!r}")


# ---------------------------------------------------------------- value helpers


def _mapping(value: Any, what: str) -> dict:
    if not isinstance(value, dict):
        raise ConfigError(f"{what}: expected a mapping, got {value!r}")
    return value


def _u64(value: Any, what: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"{what}: expected an unsigned integer, got {value!r}")
    if not 0 <= value <= U64_MAX:
        raise ConfigError(f"{what}: {value} is out of range for u64")
    return value


def _opt_u64(value: Any, what: str) -> int | None:
    return None if value is None else _u64(value, what)


def _string(value: Any, what: str) -> str:
    if not isinstance(value, str):
        raise ConfigError(f"{what}: expected a string, got {value!r}")
    return value


def _opt_string(value: Any, what: str) -> str | None:
    return None if value is None else _string(value, what)


def _opt_bool(value: Any, what: str) -> bool | None:
    if value is not None and not isinstance(value, bool):
        raise ConfigError(f"{what}: expected a boolean, got {value!r}")
    return value


def _list(value: Any, what: str) -> list:
    if not isinstance(value, list):
        raise ConfigError(f"{what}: expected a sequence, got {value!r}")
    return value


def _string_list(value: Any, what: str) -> list[str]:
    return [_string(item, what) for item in _list(value, what)]


def _string_set(value: Any, what: str) -> set[str]:
    return set(_string_list(value, what))


def _field(
    data: dict,
    key: str,
    parse: Callable[[Any, str], T],
    default: Callable[[], T] | object = _MISSING,
) -> T:
    if key not in data:
        if default is _MISSING:
            raise ConfigError(f"missing field `{key}`")
        return default()  # type: ignore[operator]
    return parse(data[key], key)


def _named_map(parse: Callable[[Any], T]) -> Callable[[Any, str], dict[str, T]]:
    def parse_map(value: Any, what: str) -> dict[str, T]:
        return {
            _string(name, what): parse(item)
            for name, item in _mapping(value, what).items()
        }

    return parse_map


# ---------------------------------------------------------------- commitment


class Commitment(str, enum.Enum):
    """Commitment level of subscribed updates."""

    PROCESSED = "processed"
    CONFIRMED = "confirmed"
    FINALIZED = "finalized"

    def to_proto(self) -> int:
        """Return the numeric protocol value of this level."""
        return _COMMITMENT_LEVELS[self]

    @classmethod
    def from_value(cls, value: Any) -> Commitment:
        """Parse a lowercase commitment name."""
        try:
            return cls(value)
        except ValueError:
            raise ConfigError(f"unknown commitment: {value!r}") from None


_COMMITMENT_LEVELS = {
    Commitment.PROCESSED: 0,
    Commitment.CONFIRMED: 1,
    Commitment.FINALIZED: 2,
}


def _opt_commitment(value: Any, what: str) -> Commitment | None:
    return None if value is None else Commitment.from_value(value)


# ---------------------------------------------------------------- account filters


class LamportsCmp(str, enum.Enum):
    """Comparison applied to an account's lamports."""

    EQ = "Eq"
    NE = "Ne"
    LT = "Lt"
    GT = "Gt"


@dataclass(frozen=True)
class AccountsFilterMemcmp:
    """Match account data at an offset against base58 bytes."""

    offset: int
    base58: str

    def to_value(self) -> dict:
        return {"Memcmp": {"offset": self.offset, "base58": self.base58}}

    def to_proto(self) -> dict:
        return {"memcmp": {"offset": self.offset, "base58": self.base58}}


@dataclass(frozen=True)
class AccountsFilterDataSize:
    """Match accounts whose data has the given size."""

    size: int

    def to_value(self) -> dict:
        return {"DataSize": self.size}

    def to_proto(self) -> dict:
        return {"datasize": self.size}


@dataclass(frozen=True)
class AccountsFilterTokenAccountState:
    """Match valid token accounts."""

    def to_value(self) -> str:
        return "TokenAccountState"

    def to_proto(self) -> dict:
        return {"token_account_state": True}


@dataclass(frozen=True)
class AccountsFilterLamports:
    """Compare an account's lamports with a value."""

    cmp: LamportsCmp
    value: int

    def to_value(self) -> dict:
        return {"Lamports": {self.cmp.value: self.value}}

    def to_proto(self) -> dict:
        return {"lamports": {self.cmp.value.lower(): self.value}}


AccountsFilter = Union[
    AccountsFilterMemcmp,
    AccountsFilterDataSize,
    AccountsFilterTokenAccountState,
    AccountsFilterLamports,
]


def _parse_lamports(value: Any) -> AccountsFilterLamports:
    data = _mapping(value, "Lamports")
    if len(data) != 1:
        raise ConfigError("Lamports: expected exactly one comparison")
    ((name, amount),) = data.items()
    try:
        cmp = LamportsCmp(name)
    except ValueError:
        raise ConfigError(f"Lamports: unknown comparison {name!r}") from None
    return AccountsFilterLamports(cmp, _u64(amount, name))


def parse_accounts_filter(value: Any) -> AccountsFilter:
    """Parse an externally tagged accounts filter."""
    if value == "TokenAccountState":
        return AccountsFilterTokenAccountState()
    if not isinstance(value, dict) or len(value) != 1:
        raise ConfigError(f"invalid accounts filter: {value!r}")
    ((variant, content),) = value.items()
    if variant == "Memcmp":
        data = _mapping(content, "Memcmp")
        return AccountsFilterMemcmp(
            offset=_field(data, "offset", _u64),
            base58=_field(data, "base58", _string),
        )
    if variant == "DataSize":
        return AccountsFilterDataSize(_u64(content, "DataSize"))
    if variant == "Lamports":
        return _parse_lamports(content)
    raise ConfigError(f"unknown accounts filter variant: {variant!r}")


def _filter_list(value: Any, what: str) -> list[AccountsFilter]:
    return [parse_accounts_filter(item) for item in _list(value, what)]


# ---------------------------------------------------------------- request parts


@dataclass
class ConfigGrpcRequestSlots:
    """Slot subscription options."""

    filter_by_commitment: bool | None = None
    interslot_updates: bool | None = None

    @classmethod
    def from_value(cls, value: Any) -> ConfigGrpcRequestSlots:
        data = _mapping(value, "slots")
        return cls(
            filter_by_commitment=_field(data, "filter_by_commitment", _opt_bool, lambda: None),
            interslot_updates=_field(data, "interslot_updates", _opt_bool, lambda: None),
        )

    def to_proto(self) -> dict:
        return {
            "filter_by_commitment": self.filter_by_commitment,
            "interslot_updates": self.interslot_updates,
        }


@dataclass
class ConfigGrpcRequestAccounts:
    """Account subscription options."""

    account: list[str] = field(default_factory=list)
    owner: list[str] = field(default_factory=list)
    filters: list[AccountsFilter] = field(default_factory=list)
    nonempty_txn_signature: bool | None = None

    @classmethod
    def from_value(cls, value: Any) -> ConfigGrpcRequestAccounts:
        data = _mapping(value, "accounts")
        return cls(
            account=_field(data, "account", _string_list, list),
            owner=_field(data, "owner", _string_list, list),
            filters=_field(data, "filters", _filter_list, list),
            nonempty_txn_signature=_field(
                data, "nonempty_txn_signature", _opt_bool, lambda: None
            ),
        )

    def to_proto(self) -> dict:
        return {
            "account": list(self.account),
            "owner": list(self.owner),
            "filters": [item.to_proto() for item in self.filters],
            "nonempty_txn_signature": self.nonempty_txn_signature,
        }


@dataclass
class ConfigGrpcRequestTransactions:
    """Transaction subscription options."""

    vote: bool | None = None
    failed: bool | None = None
    signature: str | None = None
    account_include: list[str] = field(default_factory=list)
    account_exclude: list[str] = field(default_factory=list)
    account_required: list[str] = field(default_factory=list)

    @classmethod
    def from_value(cls, value: Any) -> ConfigGrpcRequestTransactions:
        data = _mapping(value, "transactions")
        return cls(
            vote=_field(data, "vote", _opt_bool, lambda: None),
            failed=_field(data, "failed", _opt_bool, lambda: None),
            signature=_field(data, "signature", _opt_string, lambda: None),
            account_include=_field(data, "account_include", _string_list, list),
            account_exclude=_field(data, "account_exclude", _string_list, list),
            account_required=_field(data, "account_required", _string_list, list),
        )

    def to_proto(self) -> dict:
        return {
            "vote": self.vote,
            "failed": self.failed,
            "signature": self.signature,
            "account_include": list(self.account_include),
            "account_exclude": list(self.account_exclude),
            "account_required": list(self.account_required),
        }


@dataclass
class ConfigGrpcRequestBlocks:
    """Block subscription options."""

    account_include: list[str] = field(default_factory=list)
    include_transactions: bool | None = None
    include_accounts: bool | None = None
    include_entries: bool | None = None

    @classmethod
    def from_value(cls, value: Any) -> ConfigGrpcRequestBlocks:
        data = _mapping(value, "blocks")
        return cls(
            account_include=_field(data, "account_include", _string_list, list),
            include_transactions=_field(data, "include_transactions", _opt_bool, lambda: None),
            include_accounts=_field(data, "include_accounts", _opt_bool, lambda: None),
            include_entries=_field(data, "include_entries", _opt_bool, lambda: None),
        )

    def to_proto(self) -> dict:
        return {
            "account_include": list(self.account_include),
            "include_transactions": self.include_transactions,
            "include_accounts": self.include_accounts,
            "include_entries": self.include_entries,
        }


@dataclass(frozen=True)
class ConfigGrpcRequestAccountsDataSlice:
    """A slice of account data to receive."""

    offset: int
    length: int

    @classmethod
    def from_value(cls, value: Any) -> ConfigGrpcRequestAccountsDataSlice:
        data = _mapping(value, "accounts_data_slice")
        return cls(
            offset=_field(data, "offset", _u64),
            length=_field(data, "length", _u64),
        )

    def to_proto(self) -> dict:
        return {"offset": self.offset, "length": self.length}


def _slice_list(value: Any, what: str) -> list[ConfigGrpcRequestAccountsDataSlice]:
    return [ConfigGrpcRequestAccountsDataSlice.from_value(item) for item in _list(value, what)]


@dataclass
class ConfigGrpcRequest:
    """A full subscribe request as written in the configuration."""

    slots: dict[str, ConfigGrpcRequestSlots] = field(default_factory=dict)
    accounts: dict[str, ConfigGrpcRequestAccounts] = field(default_factory=dict)
    transactions: dict[str, ConfigGrpcRequestTransactions] = field(default_factory=dict)
    transactions_status: dict[str, ConfigGrpcRequestTransactions] = field(default_factory=dict)
    entries: set[str] = field(default_factory=set)
    blocks: dict[str, ConfigGrpcRequestBlocks] = field(default_factory=dict)
    blocks_meta: set[str] = field(default_factory=set)
    commitment: Commitment | None = None
    accounts_data_slice: list[ConfigGrpcRequestAccountsDataSlice] = field(default_factory=list)
    from_slot: int | None = None

    @classmethod
    def from_value(cls, value: Any) -> ConfigGrpcRequest:
        data = _mapping(value, "request")
        transactions = _named_map(ConfigGrpcRequestTransactions.from_value)
        return cls(
            slots=_field(data, "slots", _named_map(ConfigGrpcRequestSlots.from_value), dict),
            accounts=_field(
                data, "accounts", _named_map(ConfigGrpcRequestAccounts.from_value), dict
            ),
            transactions=_field(data, "transactions", transactions, dict),
            transactions_status=_field(data, "transactions_status", transactions, dict),
            entries=_field(data, "entries", _string_set, set),
            blocks=_field(data, "blocks", _named_map(ConfigGrpcRequestBlocks.from_value), dict),
            blocks_meta=_field(data, "blocks_meta", _string_set, set),
            commitment=_field(data, "commitment", _opt_commitment, lambda: None),
            accounts_data_slice=_field(data, "accounts_data_slice", _slice_list, list),
            from_slot=_field(data, "from_slot", _opt_u64, lambda: None),
        )

    def to_proto(self) -> dict:
        """Build the subscribe request message as a dict of protocol fields."""

        def convert(items: dict) -> dict:
            return {name: item.to_proto() for name, item in items.items()}

        return {
            "slots": convert(self.slots),
            "accounts": convert(self.accounts),
            "transactions": convert(self.transactions),
            "transactions_status": convert(self.transactions_status),
            "entry": {name: {} for name in sorted(self.entries)},
            "blocks": convert(self.blocks),
            "blocks_meta": {name: {} for name in sorted(self.blocks_meta)},
            "commitment": None if self.commitment is None else self.commitment.to_proto(),
            "accounts_data_slice": [item.to_proto() for item in self.accounts_data_slice],
            "ping": None,
            "from_slot": self.from_slot,
        }


# ---------------------------------------------------------------- number parsing

_USIZE_TEXT = re.compile(r"\+?[0-9]+")


def parse_usize_str(value: Any) -> int:
    """Parse an unsigned integer given as a number or a string with ``_`` separators."""
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        raise ConfigError(f"expected an unsigned integer or string, got {value!r}")
    if isinstance(value, str):
        text = value.replace("_", "")
        if not text:
            raise ConfigError("cannot parse integer from empty string")
        if not _USIZE_TEXT.fullmatch(text):
            raise ConfigError(f"invalid digit found in string: {value!r}")
        number = int(text)
    else:
        number = value
    if number < 0:
        raise ConfigError(f"expected an unsigned integer, got {value!r}")
    if number > U64_MAX:
        raise ConfigError(f"number too large to fit in target type: {value!r}")
    return number


def parse_duration_ms_str(value: Any) -> timedelta:
    """Parse a millisecond count (see ``parse_usize_str``) into a duration."""
    return timedelta(milliseconds=parse_usize_str(value))