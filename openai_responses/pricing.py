"""
Model pricing and cost calculation.

All prices are in USD per 1M tokens. Costs are Decimals and are not rounded.
"""
import logging
import re
from dataclasses import asdict, dataclass
from decimal import Decimal
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

log = logging.getLogger(__name__)

_ONE_MILLION = Decimal("1000000")
_ZERO = Decimal("0")
_SNAPSHOT_SUFFIX = re.compile(r"-\d{4}-\d{2}-\d{2}$")


@dataclass(frozen=True)
class Cost:
    """USD cost of one response."""
    input_cost: Decimal
    output_cost: Decimal
    total_cost: Decimal
    cached_discount: Decimal

    def to_dict(self) -> Dict[str, Decimal]:
        return asdict(self)


@dataclass(frozen=True)
class ModelPricing:
    input: Decimal
    output: Decimal
    cached_input: Optional[Decimal] = None


def _price(input: str, cached_input: Optional[str], output: str) -> ModelPricing:
    return ModelPricing(
        input=Decimal(input),
        output=Decimal(output),
        cached_input=Decimal(cached_input) if cached_input is not None else None,
    )


PRICING: Mapping[str, ModelPricing] = MappingProxyType({
    "gpt-4.1": _price("2.00", "0.50", "8.00"),
    "gpt-4.1-mini": _price("0.40", "0.10", "1.60"),
    "gpt-4.1-nano": _price("0.10", "0.025", "0.40"),
    "gpt-4.5-preview": _price("75.00", "37.50", "150.00"),
    "gpt-4o": _price("2.50", "1.25", "10.00"),
    "gpt-4o-mini": _price("0.15", "0.075", "0.60"),
    "gpt-4o-audio-preview": _price("2.50", None, "10.00"),
    "gpt-4o-mini-audio-preview": _price("0.15", None, "0.60"),
    "gpt-4o-search-preview": _price("2.50", None, "10.00"),
    "gpt-4o-mini-search-preview": _price("0.15", None, "0.60"),
    "chatgpt-4o-latest": _price("5.00", None, "15.00"),
    "gpt-4-turbo": _price("10.00", None, "30.00"),
    "gpt-4": _price("30.00", None, "60.00"),
    "gpt-3.5-turbo": _price("0.50", None, "1.50"),
    "o1": _price("15.00", "7.50", "60.00"),
    "o1-pro": _price("150.00", None, "600.00"),
    "o1-mini": _price("1.10", "0.55", "4.40"),
    "o3": _price("2.00", "0.50", "8.00"),
    "o3-pro": _price("20.00", None, "80.00"),
    "o3-mini": _price("1.10", "0.55", "4.40"),
    "o4-mini": _price("1.10", "0.275", "4.40"),
    "codex-mini-latest": _price("1.50", "0.375", "6.00"),
    "computer-use-preview": _price("3.00", None, "12.00"),
})

ALIASES: Mapping[str, str] = MappingProxyType({
    "gpt-4o-latest": "chatgpt-4o-latest",
    "gpt-4-turbo-preview": "gpt-4-turbo",
    "gpt-4-1106-preview": "gpt-4-turbo",
    "gpt-4-0125-preview": "gpt-4-turbo",
    "gpt-3.5-turbo-0125": "gpt-3.5-turbo",
    "gpt-3.5-turbo-1106": "gpt-3.5-turbo",
    "o1-preview": "o1",
})


def resolve_model(model: str) -> str:
    """Map aliases and dated snapshots (gpt-4o-2024-08-06) to a priced model name."""
    if model in PRICING:
        return model
    if model in ALIASES:
        return ALIASES[model]
    base = _SNAPSHOT_SUFFIX.sub("", model)
    return ALIASES.get(base, base)


def get_pricing(model: Optional[str]) -> Optional[ModelPricing]:
    if not model:
        return None
    return PRICING.get(resolve_model(model))


def zero_cost() -> Cost:
    return Cost(input_cost=_ZERO, output_cost=_ZERO, total_cost=_ZERO, cached_discount=_ZERO)


def _tokens_cost(tokens: int, price_per_million: Optional[Decimal]) -> Decimal:
    if price_per_million is None or tokens <= 0:
        return _ZERO
    return Decimal(tokens) / _ONE_MILLION * price_per_million


def calculate_cost(model: Optional[str], usage: Optional[Dict[str, Any]]) -> Cost:
    """
    Cost of one response from its model name and usage block.

    Unknown models and missing usage give an all-zero Cost rather than an
    error.
    """
    pricing = get_pricing(model)
    if pricing is None or not isinstance(usage, dict):
        if model and pricing is None:
            log.debug(f"No pricing for model {model!r}, cost set to zero")
        return zero_cost()

    input_tokens = usage.get("input_tokens") or 0
    output_tokens = usage.get("output_tokens") or 0
    cached_tokens = (usage.get("input_tokens_details") or {}).get("cached_tokens") or 0
    regular_tokens = max(input_tokens - cached_tokens, 0)

    cached_rate = pricing.cached_input if pricing.cached_input is not None else pricing.input
    regular_input_cost = _tokens_cost(regular_tokens, pricing.input)
    cached_input_cost = _tokens_cost(cached_tokens, cached_rate)
    output_cost = _tokens_cost(output_tokens, pricing.output)
    input_cost = regular_input_cost + cached_input_cost

    cached_discount = _ZERO
    if pricing.cached_input is not None and cached_tokens > 0:
        cached_discount = _tokens_cost(cached_tokens, pricing.input) - cached_input_cost

    return Cost(
        input_cost=input_cost,
        output_cost=output_cost,
        total_cost=input_cost + output_cost,
        cached_discount=cached_discount,
    )
