"""Training tracker models: courses, trainees and their enrollments."""

from datetime import datetime, timezone

from sqlalchemy import Column, Integer
from sqlmodel import Field, Relationship, SQLModel


class CourseBase(SQLModel):
    """Base course fields."""

    code: str = Field(max_length=20, unique=True, index=True)
    title: str = Field(max_length=200)
    duration_hours: int = Field(default=8, ge=0)


class Course(CourseBase, table=True):
    """
    Course table model.

    A course many trainees can be assigned to.
    """

    __tablename__ = "courses"

    id: int | None = Field(default=None, primary_key=True)

    # Relationships
    trainees: list["Trainee"] = Relationship(back_populates="course")


class TraineeBase(SQLModel):
    """Base trainee fields."""

    name: str = Field(max_length=100)
    course_id: int | None = Field(default=None, foreign_key="courses.id")


class Trainee(TraineeBase, table=True):
    """
    Trainee table model.

    Represents a person following at most one course at a time.
    """

    __tablename__ = "trainees"

    id: int | None = Field(default=None, primary_key=True)

    # Relationships
    course: Course | None = Relationship(back_populates="trainees")
    enrollments: list["Enrollment"] = Relationship(back_populates="trainee")


_enrollment_version = Column("version", Integer, nullable=False)


class Enrollment(SQLModel, table=True):
    """
    Enrollment table model.

    Version-counted: an update based on a stale copy is rejected.
    """

    __tablename__ = "enrollments"
    __mapper_args__ = {"version_id_col": _enrollment_version}

    id: int | None = Field(default=None, primary_key=True)
    trainee_id: int = Field(foreign_key="trainees.id")
    status: str = Field(default="active", max_length=20)
    enrolled_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    version: int | None = Field(default=None, sa_column=_enrollment_version)

    # Relationships
    trainee: Trainee | None = Relationship(back_populates="enrollments")
