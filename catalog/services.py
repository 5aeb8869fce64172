# catalog/services.py
import logging
from dataclasses import dataclass, field
from decimal import Decimal

from django.db import transaction

from catalog.models import Variant, VariantValue
from catalog.variants import same_values

logger = logging.getLogger(__name__)


@dataclass
class VariantSyncResult:
    created: list = field(default_factory=list)
    updated: list = field(default_factory=list)
    deleted: list = field(default_factory=list)
    values_synced: list = field(default_factory=list)


def _variant_fields(data) -> dict:
    return {
        "title": data.get("title") or "",
        "price": data.get("price") if data.get("price") is not None else Decimal("0.00"),
        "final_price": data.get("final_price") if data.get("final_price") is not None else Decimal("0.00"),
        "enabled": bool(data.get("enabled", True)),
        "image_id": data.get("image_id"),
    }


def _create_values(variant, values) -> None:
    if not values:
        return
    VariantValue.objects.bulk_create([
        VariantValue(
            variant=variant,
            option_id=value["option_id"],
            option_value_id=value["option_value_id"],
        )
        for value in values
    ])


def _sync_values(variant, values) -> bool:
    """
    Replace the variant's values when the submitted pairs differ.
    Returns True when anything was written.
    """
    current = list(variant.values.all())
    if not values:
        if not current:
            return False
        variant.values.all().delete()
        return True
    if same_values(current, values):
        return False
    variant.values.all().delete()
    _create_values(variant, values)
    return True


@transaction.atomic
def create_variants(product, variants_data) -> VariantSyncResult:
    """
    Create every submitted variant with its values.
    Transient editor keys (image_index, id) are ignored.
    """
    result = VariantSyncResult()
    for data in variants_data or []:
        variant = Variant.objects.create(product=product, **_variant_fields(data))
        _create_values(variant, data.get("values") or [])
        result.created.append(variant.id)
    logger.info("Created %s variants for product %s", len(result.created), product.pk)
    return result


@transaction.atomic
def sync_variants(product, variants_data) -> VariantSyncResult:
    """
    Make the product's variants match the submitted list:
    submitted ids of this product are updated, anything else is created,
    existing variants that were not submitted are deleted.
    """
    existing = {v.id: v for v in product.variants.prefetch_related("values")}
    result = VariantSyncResult()
    kept = set()

    for data in variants_data or []:
        variant = existing.get(data.get("id"))
        if variant is not None and variant.id not in kept:
            for name, value in _variant_fields(data).items():
                setattr(variant, name, value)
            variant.save()
            kept.add(variant.id)
            result.updated.append(variant.id)
            if _sync_values(variant, data.get("values") or []):
                result.values_synced.append(variant.id)
        else:
            variant = Variant.objects.create(product=product, **_variant_fields(data))
            _create_values(variant, data.get("values") or [])
            result.created.append(variant.id)

    stale = [variant_id for variant_id in existing if variant_id not in kept]
    if stale:
        Variant.objects.filter(id__in=stale).delete()
    result.deleted = stale

    logger.info(
        "Synced variants for product %s: created=%s updated=%s deleted=%s values_synced=%s",
        product.pk, result.created, result.updated, result.deleted, result.values_synced,
    )
    return result
