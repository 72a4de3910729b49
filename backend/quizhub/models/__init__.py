from quizhub.models.user import User, UserRole
from quizhub.models.quiz import Question, Quiz, QuizStatus
from quizhub.models.result import Result, ResultAnswer
from quizhub.models.security_audit import SecurityAuditEvent

__all__ = [
    "User",
    "UserRole",
    "Quiz",
    "QuizStatus",
    "Question",
    "Result",
    "ResultAnswer",
    "SecurityAuditEvent",
]
