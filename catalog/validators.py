# catalog/validators.py
from rest_framework import serializers

from catalog.models import Option, OptionValue
from catalog.variants import find_duplicate_combinations

UNIQUE_COMBINATIONS_MESSAGE = "Each variant must have a unique combination of option values."
OPTION_NOT_IN_CATEGORY_MESSAGE = "The selected options are not available for this category."
VALUE_NOT_IN_OPTION_MESSAGE = "The selected option value does not belong to its option."
REPEATED_OPTION_MESSAGE = "An option can only be used once per variant."


def validate_unique_combinations(variants):
    """No two variants may share the same non-empty combination."""
    duplicates = find_duplicate_combinations(variants)
    if duplicates:
        raise serializers.ValidationError(
            {str(index): [UNIQUE_COMBINATIONS_MESSAGE] for index in duplicates}
        )


def validate_single_value_per_option(variants):
    errors = {}
    for index, variant in enumerate(variants or []):
        option_ids = [value["option_id"] for value in variant.get("values") or []]
        if len(option_ids) != len(set(option_ids)):
            errors[str(index)] = [REPEATED_OPTION_MESSAGE]
    if errors:
        raise serializers.ValidationError(errors)


def validate_options_belong_to_category(variants, category):
    """
    Every option used by the variants must be attached to the category, and
    every value must belong to its option.
    """
    pairs = [
        (value["option_id"], value["option_value_id"])
        for variant in variants or []
        for value in variant.get("values") or []
    ]
    if not pairs:
        return

    option_ids = {option_id for option_id, _ in pairs}
    if category is None:
        raise serializers.ValidationError(OPTION_NOT_IN_CATEGORY_MESSAGE)
    attached = set(category.options.filter(id__in=option_ids).values_list("id", flat=True))
    if attached != option_ids:
        missing = option_ids - attached
        unknown = missing - set(Option.objects.filter(id__in=missing).values_list("id", flat=True))
        if unknown:
            raise serializers.ValidationError(f"Option with id {min(unknown)} not found.")
        raise serializers.ValidationError(OPTION_NOT_IN_CATEGORY_MESSAGE)

    known = set(
        OptionValue.objects.filter(id__in={value_id for _, value_id in pairs})
        .values_list("id", "option_id")
    )
    for option_id, value_id in pairs:
        if (value_id, option_id) not in known:
            raise serializers.ValidationError(VALUE_NOT_IN_OPTION_MESSAGE)


VARIANT_IMAGE_MESSAGE = "The selected image does not belong to this product."


def validate_variant_images(variants, product=None):
    """
    A variant may only point at one of its own product's images. A product
    being created has none yet, so any image_id is refused.
    """
    allowed = set(product.images.values_list("id", flat=True)) if product is not None else set()
    errors = {}
    for index, variant in enumerate(variants or []):
        image_id = variant.get("image_id")
        if image_id is not None and image_id not in allowed:
            errors[str(index)] = [VARIANT_IMAGE_MESSAGE]
    if errors:
        raise serializers.ValidationError(errors)


def stored_variants(product):
    """The product's saved variants in the submitted-variant shape, for re-validation."""
    return [
        {
            "values": [
                {"option_id": value.option_id, "option_value_id": value.option_value_id}
                for value in variant.values.all()
            ],
        }
        for variant in product.variants.prefetch_related("values")
    ]
