import unittest

from gradecalc.core.errors import ValidationError
from gradecalc.core.ledger import aggregate, make_entry
from gradecalc.core.models import ScoreEntry


class LedgerTests(unittest.TestCase):
    def test_sums_before_dividing(self):
        entries = [make_entry(45, 50), make_entry(38, 40)]
        self.assertAlmostEqual(aggregate(entries), 92.2222, places=4)

    def test_not_an_average_of_percentages(self):
        entries = [make_entry(10, 10), make_entry(0, 90)]
        self.assertAlmostEqual(aggregate(entries), 10.0)

    def test_order_does_not_matter(self):
        entries = [make_entry(7, 10), make_entry(18, 25), make_entry(40, 50)]
        self.assertEqual(aggregate(entries), aggregate(list(reversed(entries))))

    def test_empty_is_absent(self):
        self.assertIsNone(aggregate([]))

    def test_rejects_non_positive_max(self):
        with self.assertRaises(ValidationError):
            make_entry(5, 0)
        with self.assertRaises(ValidationError):
            ScoreEntry(raw_score=5, max_score=-10)

    def test_rejects_negative_and_non_numeric(self):
        with self.assertRaises(ValidationError):
            make_entry(-1, 10)
        with self.assertRaises(ValidationError):
            make_entry("abc", 10)

    def test_idempotent(self):
        entries = [make_entry(3, 4)]
        self.assertEqual(aggregate(entries), aggregate(entries))


if __name__ == "__main__":
    unittest.main()
