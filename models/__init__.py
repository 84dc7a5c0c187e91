from flask_sqlalchemy import SQLAlchemy

# Initialize SQLAlchemy
db = SQLAlchemy()

# Import models
from models.users import User

from models.courses import Course
from models.course_sections import Section
from models.course_lessons import Lesson

from models.enrollments import Enrollment
from models.lesson_progress import LessonProgress

from models.tasks import Task, Subtask

from models.assessments import Assessment, AssessmentQuestion, AssessmentAttempt
