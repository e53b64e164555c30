"""Quiz API: quizzes with JWT auth, role/permission authorization and a Redis read-through cache."""

__version__ = "1.0.0"
