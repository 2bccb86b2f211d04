import unittest

from gradecalc.core.exemption import count_exams_passed, evaluate
from gradecalc.core.models import CourseSettings
from gradecalc.core.weighting import WeightedInput


class ExemptionTests(unittest.TestCase):
    def setUp(self):
        self.settings = CourseSettings(
            has_final=True,
            has_exemption=True,
            passing_exam_percent=60,
            min_exams_passed=2,
            min_prefinal_percent=72,
        )

    def test_eligible(self):
        self.assertTrue(evaluate(2, 75, self.settings))

    def test_thresholds(self):
        self.assertFalse(evaluate(1, 75, self.settings))
        self.assertFalse(evaluate(2, 71.99, self.settings))
        self.assertTrue(evaluate(3, 72, self.settings))

    def test_requires_final_and_exemption(self):
        self.settings.has_exemption = False
        self.assertFalse(evaluate(5, 99, self.settings))
        self.settings.has_exemption = True
        self.settings.has_final = False
        self.assertFalse(evaluate(5, 99, self.settings))

    def test_count_exams_passed(self):
        exams = [
            WeightedInput(percentage=60, weight=15),
            WeightedInput(percentage=59.9, weight=15),
            WeightedInput(percentage=95, weight=15, included=False),
            WeightedInput(percentage=None, weight=15),
            WeightedInput(percentage=88, weight=15),
        ]
        self.assertEqual(count_exams_passed(exams, 60), 2)


if __name__ == "__main__":
    unittest.main()
