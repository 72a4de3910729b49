from quizhub.routers import auth, health, questions, quizzes, results, users

__all__ = [
    "auth",
    "health",
    "questions",
    "quizzes",
    "results",
    "users",
]
