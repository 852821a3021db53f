"""
Backend package for TaskVerse, a marketplace where interns complete
micro-tasks posted by businesses and earn points, levels and badges.

The FastAPI app talks to an auth service, a relational database and object
storage through small client abstractions with in-memory doubles for tests.
"""
