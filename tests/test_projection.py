import unittest

from gradecalc.core.errors import NoScaleConfigured, NothingRemaining, ValidationError
from gradecalc.core.models import Course, Criterion, CriterionKind, FinalExam, ScoreEntry
from gradecalc.core.projection import (
    ProjectionStatus,
    course_projection_table,
    project_course,
    projection_table,
    remaining_weight_for,
    required_average,
)
from gradecalc.core.scale import DEFAULT_SCALE
from gradecalc.core.weighting import WeightedInput, WeightedTotals, compute_weighted, percentage_of


class RequiredAverageTests(unittest.TestCase):
    def test_solves_for_remaining_average(self):
        projection = required_average(90, 27.6667, 30, 70)
        self.assertEqual(projection.status, ProjectionStatus.ACHIEVABLE)
        self.assertAlmostEqual(projection.required_percentage, 89.0476, places=3)

    def test_left_inverse_of_weighting(self):
        current = [WeightedInput(percentage=72.5, weight=25), WeightedInput(percentage=64, weight=15)]
        totals = compute_weighted(current)
        for target in (55, 60, 68.5, 76, 80):
            projection = required_average(target, totals.weighted_sum, totals.weight_used, 60)
            if not projection.achievable:
                continue
            replayed = compute_weighted(current + [WeightedInput(projection.required_percentage, 60)])
            self.assertAlmostEqual(percentage_of(replayed), target, delta=1e-6)

    def test_unattainable_and_guaranteed(self):
        self.assertEqual(required_average(99, 20, 40, 10).status, ProjectionStatus.UNATTAINABLE)
        self.assertEqual(required_average(10, 36, 40, 10).status, ProjectionStatus.ALREADY_GUARANTEED)
        self.assertFalse(required_average(99, 20, 40, 10).achievable)

    def test_nothing_remaining(self):
        with self.assertRaises(NothingRemaining):
            required_average(75, 80, 100, 0)

    def test_invalid_target(self):
        with self.assertRaises(ValidationError):
            required_average(101, 0, 0, 100)
        with self.assertRaises(ValidationError):
            required_average(-5, 0, 0, 100)

    def test_nothing_scored_yet(self):
        projection = required_average(76, 0, 0, 100)
        self.assertAlmostEqual(projection.required_percentage, 76.0)


class ProjectionTableTests(unittest.TestCase):
    def test_omits_out_of_range_rows(self):
        rows = projection_table(DEFAULT_SCALE, WeightedTotals(weighted_sum=24, weight_used=30), 70)
        grades = [row.target_grade for row in rows]
        self.assertEqual(grades, ["1.25", "1.50", "1.75", "2.00", "2.25", "2.50", "2.75", "3.00", "4.00"])
        self.assertAlmostEqual(rows[0].required_average_percentage, 94.2857, places=3)
        self.assertEqual(rows[-1].target_percentage, 55)

    def test_empty_scale(self):
        with self.assertRaises(NoScaleConfigured):
            projection_table([], WeightedTotals(), 50)


class CourseProjectionTests(unittest.TestCase):
    def setUp(self):
        self.quizzes = Criterion("Quizzes", 30)
        self.midterm = Criterion("Midterm", 30, CriterionKind.EXAM)
        self.course = Course(name="Physics", criteria=[self.quizzes, self.midterm], grade_scale=list(DEFAULT_SCALE))
        self.course.settings.final_weight = 40
        self.course.scores[self.quizzes.id] = [ScoreEntry(45, 50), ScoreEntry(38, 40)]

    def test_remaining_weight_counts_unscored_and_final(self):
        self.assertEqual(remaining_weight_for(self.course), 70)

    def test_excluded_criteria_are_not_remaining(self):
        self.assertEqual(remaining_weight_for(self.course, {self.midterm.id: False}), 40)

    def test_taken_final_is_not_remaining(self):
        self.course.final_exam = FinalExam(score=80, max_score=100)
        self.assertEqual(remaining_weight_for(self.course), 30)

    def test_project_course(self):
        projection = project_course(self.course, 90)
        self.assertAlmostEqual(projection.required_percentage, (90 - 27.6667) / 0.7, places=2)

    def test_fully_scored_course(self):
        self.course.scores[self.midterm.id] = [ScoreEntry(70, 100)]
        self.course.final_exam = FinalExam(score=90, max_score=100)
        with self.assertRaises(NothingRemaining):
            project_course(self.course, 80)
        with self.assertRaises(NothingRemaining):
            course_projection_table(self.course)


if __name__ == "__main__":
    unittest.main()
