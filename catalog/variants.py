# catalog/variants.py
"""
Variant combination engine.

An option is anything exposing ``id`` and ``values`` (a list, or a related
manager such as ``Option.values``); each value exposes ``id`` and ``value``.
Dicts and model instances both work. A combination is a list of
``{"option_id": ..., "option_value_id": ...}`` pairs, one per option.

Nothing here touches the database or raises: "nothing to generate" is
reported as ``None`` / ``False``.
"""

from collections.abc import Mapping
from itertools import product


def _get(obj, name, default=None):
    if isinstance(obj, Mapping):
        return obj.get(name, default)
    return getattr(obj, name, default)


def _values_of(obj):
    values = _get(obj, "values")
    if values is None:
        return []
    if hasattr(values, "all"):
        values = values.all()
    return list(values)


def _options_with_values(options):
    return [o for o in (options or []) if _values_of(o)]


def _pair(value):
    """(option_id, option_value_id) of a value dict, VariantValue row or tuple."""
    if isinstance(value, (tuple, list)):
        return value[0], value[1]
    return _get(value, "option_id"), _get(value, "option_value_id")


def _sort_key(pair):
    return tuple((part is None, part or 0) for part in pair)


def _signature(values):
    return tuple(sorted((_pair(v) for v in values), key=_sort_key))


def _existing_signatures(variants):
    signatures = set()
    for variant in variants or []:
        values = _values_of(variant)
        if values:
            signatures.add(_signature(values))
    return signatures


def combinations(options):
    """
    Lazily yield every combination of the options' values (cartesian product).
    Options without values are skipped; the first option varies slowest.
    """
    axes = []
    for option in _options_with_values(options):
        option_id = _get(option, "id") or 0
        axes.append([
            {"option_id": option_id, "option_value_id": _get(value, "id") or 0}
            for value in _values_of(option)
        ])
    if not axes:
        return
    for combo in product(*axes):
        yield [dict(pair) for pair in combo]


def all_combinations(options):
    """Every combination at once. Use with care for large option sets."""
    return list(combinations(options))


def total_combinations(options) -> int:
    filtered = _options_with_values(options)
    if not filtered:
        return 0
    total = 1
    for option in filtered:
        total *= len(_values_of(option))
    return total


def same_values(a, b) -> bool:
    """Order-insensitive equality of two value lists by (option_id, option_value_id)."""
    if not a:
        return not b
    b = b or []
    if len(a) != len(b):
        return False
    return _signature(a) == _signature(b)


def generate_values(options, existing=None):
    """First combination not used by any of the existing variants, or None."""
    used = _existing_signatures(existing)
    for combo in combinations(options):
        if _signature(combo) not in used:
            return combo
    return None


def generate_variant(options, existing=None):
    values = generate_values(options, existing)
    if values is None:
        return None
    return {"values": values, "title": build_title(values, options)}


def has_available_combinations(options, existing=None) -> bool:
    return generate_values(options, existing) is not None


def combination_stats(options, existing=None) -> dict:
    total = total_combinations(options)
    used = sum(1 for variant in (existing or []) if _values_of(variant))
    return {"total": total, "used": used, "available": max(0, total - used)}


def option_values_map(options) -> dict:
    """{option_id: {value_id: value}} for quick lookups."""
    result = {}
    for option in options or []:
        option_id = _get(option, "id")
        if not option_id or _get(option, "values") is None:
            continue
        result[option_id] = {
            _get(value, "id"): value for value in _values_of(option) if _get(value, "id")
        }
    return result


def build_title(values, options) -> str:
    """'Red / XL' from the labels of the given values; unknown ids are skipped."""
    lookup = option_values_map(options)
    parts = []
    for value in values or []:
        option_id, value_id = _pair(value)
        option_value = lookup.get(option_id, {}).get(value_id)
        if option_value is not None:
            parts.append(str(_get(option_value, "value")))
    return " / ".join(parts)


def validate_values(values, options):
    """Returns (valid, errors) for values checked against the available options."""
    by_id = {_get(o, "id"): o for o in options or []}
    errors = []
    for value in values or []:
        option_id, value_id = _pair(value)
        option = by_id.get(option_id)
        if option is None:
            errors.append(f"Option with id {option_id} not found")
            continue
        if not any(_get(v, "id") == value_id for v in _values_of(option)):
            errors.append(f'Value with id {value_id} not found in option "{_get(option, "name")}"')
    return not errors, errors


def combination_exists(values, existing) -> bool:
    return _signature(values or []) in _existing_signatures(existing)


def find_by_values(values, variants):
    for variant in variants or []:
        if same_values(_values_of(variant), values):
            return variant
    return None


def combination_signature(values) -> str:
    """Canonical key of a combination: sorted 'option:value' pairs joined by '|'."""
    return "|".join(f"{option_id}:{value_id}" for option_id, value_id in _signature(values or []))


def find_duplicate_combinations(variants):
    """Indexes of variants whose non-empty combination repeats an earlier one."""
    seen = set()
    duplicates = []
    for index, variant in enumerate(variants or []):
        values = _values_of(variant)
        if not values:
            continue
        key = _signature(values)
        if key in seen:
            duplicates.append(index)
        else:
            seen.add(key)
    return duplicates
