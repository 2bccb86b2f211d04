import unittest

from gradecalc.core.analysis import analyze, recommendations_for
from gradecalc.core.calculator import calculate
from gradecalc.core.models import Course, CourseSettings, Criterion, ScoreEntry
from gradecalc.core.scale import DEFAULT_SCALE, GradeStatus


class AnalysisTests(unittest.TestCase):
    def test_recommendation_tiers(self):
        self.assertEqual([r.kind for r in recommendations_for("5.00", False, True)], ["critical"])
        self.assertEqual([r.kind for r in recommendations_for("2.75", False, True)], ["improvement"])
        self.assertEqual([r.kind for r in recommendations_for("1.25", False, True)], ["excellent"])
        self.assertEqual(
            [r.kind for r in recommendations_for("1.00", True, True)],
            ["excellent", "decision"],
        )

    def test_analyze(self):
        work = Criterion("Work", 80)
        course = Course(
            name="Econ 11",
            criteria=[work],
            grade_scale=list(DEFAULT_SCALE),
            settings=CourseSettings(has_exemption=True),
        )
        course.scores[work.id] = [ScoreEntry(50, 100)]
        report = analyze(course, calculate(course))

        self.assertEqual(report.grade, "5.00")
        self.assertEqual(report.status, GradeStatus.FAILED)
        self.assertIsNotNone(report.exemption)
        self.assertFalse(report.exemption.eligible)
        self.assertEqual(report.exemption.min_prefinal_percent, 72)
        self.assertEqual(report.recommendations[0].kind, "critical")

    def test_no_exemption_section_without_exemption(self):
        course = Course(name="Art 1", grade_scale=list(DEFAULT_SCALE))
        report = analyze(course, calculate(course))
        self.assertIsNone(report.exemption)


if __name__ == "__main__":
    unittest.main()
