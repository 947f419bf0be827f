"""FirstCareerSteps - Backend.

The backend sits in front of the resume builder and the admin back-office:

- Every page request passes the access gate (route class + identity + account flags).
- Admin data endpoints under /api/admin are guarded separately and fail closed.
- Identity lives in Supabase Auth; role and blocked status live in the `users` table.
"""

__all__ = ["__version__"]

__version__ = "0.1.0"
