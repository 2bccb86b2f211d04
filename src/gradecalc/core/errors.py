class GradeCalcError(Exception):
    pass


class ValidationError(GradeCalcError):
    pass


class NoScaleConfigured(GradeCalcError):
    def __init__(self, message: str = "No grade scale configured") -> None:
        super().__init__(message)


class NothingRemaining(GradeCalcError):
    def __init__(self, message: str = "Every component is already scored; adjust existing scores instead") -> None:
        super().__init__(message)


class CourseNotFound(GradeCalcError):
    pass


class SemesterNotFound(GradeCalcError):
    pass


class LastCourseError(GradeCalcError):
    pass
