import unittest

from gradecalc.core.calculator import calculate, course_grade, course_totals, weight_warnings
from gradecalc.core.models import Course, CourseSettings, Criterion, CriterionKind, FinalExam, ScoreEntry
from gradecalc.core.scale import DEFAULT_SCALE, NO_SCALE_LABEL


def build_course():
    quizzes = Criterion("Quizzes", 30)
    midterm = Criterion("Midterm", 30, CriterionKind.EXAM)
    course = Course(
        name="Physics 71",
        criteria=[quizzes, midterm],
        grade_scale=list(DEFAULT_SCALE),
        settings=CourseSettings(final_weight=40),
    )
    course.scores[quizzes.id] = [ScoreEntry(45, 50), ScoreEntry(38, 40)]
    return course, quizzes, midterm


class CalculatorTests(unittest.TestCase):
    def test_quizzes_only(self):
        course, _, _ = build_course()
        result = calculate(course)
        self.assertEqual(len(result.breakdown), 1)
        row = result.breakdown[0]
        self.assertEqual(row.name, "Quizzes")
        self.assertAlmostEqual(row.percentage, 92.22, places=2)
        self.assertAlmostEqual(row.weighted_contribution, 27.67, places=2)
        self.assertEqual(result.total_weight_used, 30)
        self.assertAlmostEqual(result.final_percentage, 92.22, places=2)
        self.assertIsNone(result.final_score)

    def test_full_course(self):
        course, _, midterm = build_course()
        course.scores[midterm.id] = [ScoreEntry(70, 100)]
        course.final_exam = FinalExam(score=85, max_score=100)

        result = calculate(course)
        self.assertAlmostEqual(result.prefinal_percentage, 81.11, places=2)
        self.assertAlmostEqual(result.final_percentage, 82.67, places=2)
        self.assertEqual(result.exams_passed, 1)
        self.assertEqual(result.total_weight_used, 100)
        self.assertEqual(result.final_score.name, "Final Exam")
        self.assertAlmostEqual(result.final_score.weighted_contribution, 34.0)
        self.assertEqual(result.warnings, ())

    def test_excluded_final_exam(self):
        course, _, _ = build_course()
        course.final_exam = FinalExam(score=10, max_score=100, include=False)
        result = calculate(course)
        self.assertIsNone(result.final_score)
        self.assertAlmostEqual(result.final_percentage, result.prefinal_percentage)

    def test_no_final_configured(self):
        course, _, _ = build_course()
        course.settings.has_final = False
        course.final_exam = FinalExam(score=10, max_score=100)
        result = calculate(course)
        self.assertIsNone(result.final_score)
        self.assertIn("Total weight is 60%, expected 100%", result.warnings)

    def test_inclusion_flags(self):
        course, quizzes, midterm = build_course()
        course.scores[midterm.id] = [ScoreEntry(50, 100)]
        result = calculate(course, {quizzes.id: False})
        self.assertEqual(result.total_weight_used, 30)
        self.assertAlmostEqual(result.final_percentage, 50.0)
        self.assertEqual(result.exams_passed, 0)

    def test_nothing_scored(self):
        course = Course(name="Empty")
        result = calculate(course)
        self.assertEqual(result.final_percentage, 0.0)
        self.assertEqual(result.total_weight_used, 0)
        self.assertIn("No grade criteria defined", result.warnings)

    def test_exemption_eligible(self):
        exam1 = Criterion("Exam 1", 25, CriterionKind.EXAM)
        exam2 = Criterion("Exam 2", 25, CriterionKind.EXAM)
        labs = Criterion("Labs", 30)
        course = Course(
            name="Math 21",
            criteria=[labs, exam1, exam2],
            settings=CourseSettings(has_exemption=True),
        )
        course.scores[labs.id] = [ScoreEntry(24, 30)]
        course.scores[exam1.id] = [ScoreEntry(70, 100)]
        course.scores[exam2.id] = [ScoreEntry(75, 100)]

        result = calculate(course)
        self.assertEqual(result.exams_passed, 2)
        self.assertGreaterEqual(result.prefinal_percentage, 72)
        self.assertTrue(result.exempt_eligible)

    def test_does_not_mutate_course(self):
        course, _, _ = build_course()
        calculate(course)
        self.assertIsNone(course.result)

    def test_idempotent(self):
        course, _, _ = build_course()
        self.assertEqual(calculate(course), calculate(course))

    def test_course_grade(self):
        course, _, _ = build_course()
        self.assertIsNone(course_grade(course))
        course.result = calculate(course)
        self.assertEqual(course_grade(course), "1.25")
        course.grade_scale = []
        self.assertEqual(course_grade(course), NO_SCALE_LABEL)

    def test_course_totals_match_result(self):
        course, _, _ = build_course()
        course.final_exam = FinalExam(score=60, max_score=80)
        totals = course_totals(course)
        self.assertAlmostEqual(totals.percentage, calculate(course).final_percentage)

    def test_weight_warnings(self):
        course, _, _ = build_course()
        self.assertEqual(weight_warnings(course), [])
        course.settings.final_weight = 20
        self.assertEqual(weight_warnings(course), ["Total weight is 80%, expected 100%"])


if __name__ == "__main__":
    unittest.main()
