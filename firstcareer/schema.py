"""Database schema for the FirstCareerSteps account store.

In production these tables live in the Supabase Postgres database; `users.id` is the
Supabase Auth user id (uuid as TEXT). SQLite is supported for local development and tests.

Timestamps are ISO-8601 TEXT (UTC, with 'Z') so they compare lexicographically on both
engines (e.g. `date_created >= ?` for "signups in the last 7 days").

NOTE: The Postgres schema is generated from the SQLite schema with a small set of
transformations.
"""

from __future__ import annotations

import re


SCHEMA_SQLITE = r"""
PRAGMA foreign_keys = ON;

-- Accounts. `role` and `blocked_at` drive the access gate.
CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    email TEXT NOT NULL,
    full_name TEXT,
    role TEXT NOT NULL DEFAULT 'user' CHECK (role IN ('admin','user')),
    blocked_at TEXT,
    linkedin_link TEXT,
    date_created TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_users_date_created ON users (date_created);
CREATE INDEX IF NOT EXISTS idx_users_blocked_at ON users (blocked_at);

CREATE TABLE IF NOT EXISTS profile (
    user_id TEXT PRIMARY KEY,
    headline TEXT,
    about TEXT,
    location TEXT,
    updated_at TEXT NOT NULL,
    FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS resumes (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    title TEXT,
    status TEXT NOT NULL DEFAULT 'draft',
    content_json TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE
);
CREATE INDEX IF NOT EXISTS idx_resumes_user_created ON resumes (user_id, created_at);

CREATE TABLE IF NOT EXISTS career_roadmaps (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    career_name TEXT,
    infographic_url TEXT,
    milestone_roadmap_url TEXT,
    roadmap_json TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE
);
CREATE INDEX IF NOT EXISTS idx_roadmaps_user_created ON career_roadmaps (user_id, created_at);

-- Billing (Stripe). One row per user.
CREATE TABLE IF NOT EXISTS subscriptions (
    user_id TEXT PRIMARY KEY,
    status TEXT, -- e.g. active|trialing|past_due|canceled
    stripe_customer_id TEXT,
    stripe_subscription_id TEXT,
    current_period_end TEXT,
    updated_at TEXT NOT NULL,
    FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE
);
CREATE INDEX IF NOT EXISTS idx_subscriptions_status ON subscriptions (status);
"""


def _sqlite_to_postgres(ddl: str) -> str:
    # Remove SQLite pragmas
    lines: list[str] = []
    for line in ddl.splitlines():
        if line.strip().upper().startswith("PRAGMA "):
            continue
        lines.append(line)
    out = "\n".join(lines)

    # Types
    out = re.sub(r"\bREAL\b", "DOUBLE PRECISION", out)
    return out


SCHEMA_POSTGRES = _sqlite_to_postgres(SCHEMA_SQLITE)


def get_schema_sql(dialect: str) -> str:
    d = (dialect or "").lower()
    if d.startswith("post"):
        return SCHEMA_POSTGRES
    return SCHEMA_SQLITE
