"""
Combination engine tests. Options and variants are plain dicts here; the
engine reads model instances the same way.
"""
from django.test import SimpleTestCase

from catalog import variants as engine


def option(option_id, name, *values):
    return {
        "id": option_id,
        "name": name,
        "values": [{"id": option_id * 10 + i, "value": v} for i, v in enumerate(values, start=1)],
    }


def pair(option_id, value_id):
    return {"option_id": option_id, "option_value_id": value_id}


SIZE = option(1, "size", "S", "M")
COLOR = option(2, "color", "Red", "Blue", "Green")
EMPTY = option(3, "material")


class CombinationTests(SimpleTestCase):
    def test_cartesian_product_order(self):
        combos = engine.all_combinations([SIZE, COLOR])
        self.assertEqual(len(combos), 6)
        self.assertEqual(combos[0], [pair(1, 11), pair(2, 21)])
        self.assertEqual(combos[1], [pair(1, 11), pair(2, 22)])
        self.assertEqual(combos[-1], [pair(1, 12), pair(2, 23)])

    def test_options_without_values_are_ignored(self):
        self.assertEqual(engine.total_combinations([SIZE, EMPTY]), 2)
        self.assertEqual(len(engine.all_combinations([EMPTY, SIZE])), 2)
        self.assertEqual(engine.total_combinations([EMPTY]), 0)
        self.assertEqual(engine.all_combinations([]), [])

    def test_combinations_are_lazy(self):
        many = [option(i, f"o{i}", *"abcdefghij") for i in range(1, 9)]
        self.assertEqual(engine.total_combinations(many), 10 ** 8)
        first = next(engine.combinations(many))
        self.assertEqual(len(first), 8)


class GenerationTests(SimpleTestCase):
    def test_first_unused_combination(self):
        existing = [{"values": [pair(2, 21), pair(1, 11)]}]
        generated = engine.generate_variant([SIZE, COLOR], existing)
        self.assertEqual(generated["values"], [pair(1, 11), pair(2, 22)])
        self.assertEqual(generated["title"], "S / Blue")

    def test_exhausted(self):
        existing = [{"values": combo} for combo in engine.all_combinations([SIZE])]
        self.assertIsNone(engine.generate_variant([SIZE], existing))
        self.assertFalse(engine.has_available_combinations([SIZE], existing))

    def test_variants_without_values_do_not_block(self):
        existing = [{"values": []}, {"values": None}]
        self.assertTrue(engine.has_available_combinations([SIZE], existing))
        self.assertEqual(engine.combination_stats([SIZE, COLOR], existing), {"total": 6, "used": 0, "available": 6})

    def test_stats(self):
        existing = [{"values": [pair(1, 11), pair(2, 21)]}, {"values": [pair(1, 12), pair(2, 21)]}]
        self.assertEqual(engine.combination_stats([SIZE, COLOR], existing), {"total": 6, "used": 2, "available": 4})


class ComparisonTests(SimpleTestCase):
    def test_same_values_ignores_order(self):
        self.assertTrue(engine.same_values([pair(1, 11), pair(2, 21)], [pair(2, 21), pair(1, 11)]))
        self.assertFalse(engine.same_values([pair(1, 11)], [pair(1, 12)]))
        self.assertFalse(engine.same_values([pair(1, 11)], [pair(1, 11), pair(2, 21)]))
        self.assertTrue(engine.same_values([], None))
        self.assertFalse(engine.same_values([], [pair(1, 11)]))

    def test_signature_and_lookup(self):
        values = [pair(2, 22), pair(1, 11)]
        self.assertEqual(engine.combination_signature(values), "1:11|2:22")
        variants = [{"id": 5, "values": [pair(1, 12)]}, {"id": 6, "values": [pair(1, 11), pair(2, 22)]}]
        self.assertEqual(engine.find_by_values(values, variants)["id"], 6)
        self.assertIsNone(engine.find_by_values([pair(1, 99)], variants))
        self.assertTrue(engine.combination_exists(values, variants))

    def test_duplicates(self):
        variants = [
            {"values": [pair(1, 11), pair(2, 21)]},
            {"values": []},
            {"values": [pair(2, 21), pair(1, 11)]},
            {"values": []},
            {"values": [pair(1, 12)]},
        ]
        self.assertEqual(engine.find_duplicate_combinations(variants), [2])


class TitleAndValidationTests(SimpleTestCase):
    def test_build_title_skips_unknown(self):
        self.assertEqual(engine.build_title([pair(1, 12), pair(2, 23)], [SIZE, COLOR]), "M / Green")
        self.assertEqual(engine.build_title([pair(1, 12), pair(9, 91)], [SIZE, COLOR]), "M")
        self.assertEqual(engine.build_title([], [SIZE]), "")

    def test_validate_values(self):
        ok, errors = engine.validate_values([pair(1, 11), pair(2, 23)], [SIZE, COLOR])
        self.assertTrue(ok)
        self.assertEqual(errors, [])

        ok, errors = engine.validate_values([pair(7, 71), pair(1, 21)], [SIZE, COLOR])
        self.assertFalse(ok)
        self.assertEqual(errors[0], "Option with id 7 not found")
        self.assertEqual(errors[1], 'Value with id 21 not found in option "size"')
