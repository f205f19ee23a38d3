# tradegate/config.py
# =============================================================================
# Purpose:
#   Build the immutable TraderConfig the adapter is constructed from. Values
#   come from the engine's config mapping, CLI overrides, or a .env file.
#
# Summary:
#   - Defines a frozen TraderConfig dataclass
#   - TraderConfig.from_mapping() accepts the engine's {asset, currency, key,
#     secret, post_only} dict
#   - load_trader_config() resolves CLI > env > default with logging
# =============================================================================
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any, Callable, Dict, Literal, Mapping, Tuple, overload

from dotenv import load_dotenv

from .types import InstrumentPair

_LOGGER = logging.getLogger("tradegate.config")

_TRUE_LITERALS = {"1", "true", "t", "yes", "y", "on"}
_FALSE_LITERALS = {"0", "false", "f", "no", "n", "off"}


@dataclass(frozen=True)
class TraderConfig:
    """Everything the adapter needs, fixed at construction."""

    asset: str
    currency: str
    key: str | None = None
    secret: str | None = None
    post_only: bool = True
    exchange_id: str = "cryptopia"
    sandbox: bool = False

    @property
    def pair(self) -> InstrumentPair:
        return InstrumentPair(asset=self.asset, currency=self.currency)

    @property
    def has_credentials(self) -> bool:
        return bool(self.key) and bool(self.secret)

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> "TraderConfig":
        post_only, ok = _bool_coercer(mapping.get("post_only"), True)
        if not ok:
            post_only = True
        sandbox, ok = _bool_coercer(mapping.get("sandbox"), False)
        if not ok:
            sandbox = False
        return cls(
            asset=str(mapping["asset"]),
            currency=str(mapping["currency"]),
            key=mapping.get("key") or None,
            secret=mapping.get("secret") or None,
            post_only=post_only,
            exchange_id=str(mapping.get("exchange_id") or "cryptopia").lower(),
            sandbox=sandbox,
        )

    def __repr__(self) -> str:
        key = "***" if self.key else None
        secret = "***" if self.secret else None
        return (
            f"TraderConfig(asset={self.asset!r}, currency={self.currency!r}, "
            f"key={key!r}, secret={secret!r}, post_only={self.post_only!r}, "
            f"exchange_id={self.exchange_id!r}, sandbox={self.sandbox!r})"
        )


@dataclass(frozen=True)
class _FieldSpec:
    env: str
    default: Any
    coerce: Callable[[Any, Any], Tuple[Any, bool]]
    redact: bool = False


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str) and value.strip() == "":
        return True
    return False


def _pick_precedence(
    cli_value: Any, env_value: Any, default_value: Any
) -> Tuple[Any, str]:
    if not _is_missing(cli_value):
        return cli_value, "cli"
    if not _is_missing(env_value):
        return env_value, "env"
    return default_value, "default"


def _str_coercer(
    *, lower: bool = False, upper: bool = False, optional: bool = False
) -> Callable[[Any, Any], Tuple[str | None, bool]]:
    def _inner(value: Any, default: Any) -> Tuple[str | None, bool]:
        if value is None:
            return default, optional
        text = str(value).strip()
        if text == "":
            return default, optional
        if lower:
            text = text.lower()
        if upper:
            text = text.upper()
        return text, True

    return _inner


def _bool_coercer(value: Any, default: Any) -> Tuple[bool, bool]:
    if value is None:
        return bool(default), False
    if isinstance(value, bool):
        return value, True
    token = str(value).strip().lower()
    if token in _TRUE_LITERALS:
        return True, True
    if token in _FALSE_LITERALS:
        return False, True
    return bool(default), False


_FIELD_SPECS: Dict[str, _FieldSpec] = {
    "asset": _FieldSpec("TRADER_ASSET", "ETN", _str_coercer(upper=True)),
    "currency": _FieldSpec("TRADER_CURRENCY", "BTC", _str_coercer(upper=True)),
    "key": _FieldSpec(
        "CRYPTOPIA_API_KEY", None, _str_coercer(optional=True), redact=True
    ),
    "secret": _FieldSpec(
        "CRYPTOPIA_API_SECRET", None, _str_coercer(optional=True), redact=True
    ),
    "post_only": _FieldSpec("TRADER_POST_ONLY", True, _bool_coercer),
    "exchange_id": _FieldSpec(
        "TRADER_EXCHANGE_ID", "cryptopia", _str_coercer(lower=True)
    ),
    "sandbox": _FieldSpec("TRADER_SANDBOX", False, _bool_coercer),
}


@overload
def load_trader_config(
    *,
    cli_overrides: Mapping[str, Any] | None = None,
    env_policy: Mapping[str, bool] | None = None,
    include_sources: Literal[True],
    logger: logging.Logger | None = None,
) -> Tuple[TraderConfig, Dict[str, str]]: ...


@overload
def load_trader_config(
    *,
    cli_overrides: Mapping[str, Any] | None = None,
    env_policy: Mapping[str, bool] | None = None,
    include_sources: Literal[False] = False,
    logger: logging.Logger | None = None,
) -> TraderConfig: ...


def load_trader_config(
    *,
    cli_overrides: Mapping[str, Any] | None = None,
    env_policy: Mapping[str, bool] | None = None,
    include_sources: bool = False,
    logger: logging.Logger | None = None,
) -> TraderConfig | Tuple[TraderConfig, Dict[str, str]]:
    """Resolve the trader config with deterministic precedence and logging.

    The precedence order is CLI overrides > environment (when permitted) >
    defaults. With ``include_sources`` the function returns
    ``(TraderConfig, sources)`` where *sources* maps field names to
    ``{"cli" | "env" | "default"}``.
    """

    load_dotenv()

    overrides = {
        key: value for key, value in (cli_overrides or {}).items() if value is not None
    }
    env_policy_map = {key: bool(value) for key, value in (env_policy or {}).items()}

    log = logger or _LOGGER
    resolved: Dict[str, Any] = {}
    sources: Dict[str, str] = {}

    for field_name, spec in _FIELD_SPECS.items():
        allow_env = env_policy_map.get(field_name, True)
        env_value = os.getenv(spec.env) if allow_env else None

        raw_value, source = _pick_precedence(
            overrides.get(field_name), env_value, spec.default
        )
        coerced, ok = spec.coerce(raw_value, spec.default)
        if not ok:
            if source != "default":
                log.warning(
                    "config_invalid_value key=%s source=%s fallback=%s",
                    field_name,
                    source,
                    spec.default,
                )
            coerced = spec.default
            source = "default"

        display = "***" if spec.redact and coerced not in (None, "") else coerced
        log.info(
            "config_resolved key=%s value=%s source=%s", field_name, display, source
        )

        resolved[field_name] = coerced
        sources[field_name] = source

    config = TraderConfig(**resolved)
    if include_sources:
        return config, sources
    return config


__all__ = ["TraderConfig", "load_trader_config"]
