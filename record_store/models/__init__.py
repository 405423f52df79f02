from .training import Course, Enrollment, Trainee

__all__ = ["Course", "Enrollment", "Trainee"]
