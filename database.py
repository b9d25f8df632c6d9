"""
Relational schema and connection setup for the SQL storage adapters.

SQLite uses raw sqlite3 with WAL mode and parameterized queries; PostgreSQL
goes through pg_compat, which accepts the same SQL. JSON-valued columns are
declared as JSON_DOC and rendered as TEXT (SQLite) or JSONB (PostgreSQL).
"""

from __future__ import annotations

import logging
import sqlite3

logger = logging.getLogger(__name__)


SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    username TEXT NOT NULL UNIQUE,
    email TEXT UNIQUE,
    display_name TEXT NOT NULL DEFAULT '',
    role TEXT NOT NULL DEFAULT 'student',
    password_hash TEXT NOT NULL DEFAULT '',
    created_at TEXT NOT NULL DEFAULT '',
    updated_at TEXT NOT NULL DEFAULT ''
);

CREATE TABLE IF NOT EXISTS student_profiles (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL UNIQUE REFERENCES users(id) ON DELETE CASCADE,
    current_mood TEXT,
    learning_style TEXT,
    interests JSON_DOC NOT NULL DEFAULT '[]',
    accessibility_needs JSON_DOC NOT NULL DEFAULT '{}',
    level INTEGER NOT NULL DEFAULT 1,
    total_xp INTEGER NOT NULL DEFAULT 0 CHECK (total_xp >= 0),
    available_spins INTEGER NOT NULL DEFAULT 3 CHECK (available_spins >= 0),
    streak INTEGER NOT NULL DEFAULT 0 CHECK (streak >= 0),
    badges JSON_DOC NOT NULL DEFAULT '[]',
    updated_at TEXT NOT NULL DEFAULT ''
);

-- Reference catalog: subjects
CREATE TABLE IF NOT EXISTS subjects (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    magical_name TEXT NOT NULL,
    icon TEXT NOT NULL,
    color TEXT NOT NULL,
    description TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS student_progress (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    student_id INTEGER NOT NULL REFERENCES student_profiles(id) ON DELETE CASCADE,
    subject_id INTEGER NOT NULL REFERENCES subjects(id),
    progress INTEGER NOT NULL DEFAULT 0,
    completed_tasks INTEGER NOT NULL DEFAULT 0,
    total_tasks INTEGER NOT NULL DEFAULT 0,
    last_accessed TEXT NOT NULL DEFAULT '',
    UNIQUE(student_id, subject_id)
);

-- Append-only survey log
CREATE TABLE IF NOT EXISTS survey_responses (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    student_id INTEGER NOT NULL REFERENCES student_profiles(id) ON DELETE CASCADE,
    responses JSON_DOC NOT NULL,
    analyzed_data JSON_DOC,
    created_at TEXT NOT NULL DEFAULT ''
);
CREATE INDEX IF NOT EXISTS idx_survey_student_created ON survey_responses(student_id, created_at);

-- Reference catalog: rewards
CREATE TABLE IF NOT EXISTS rewards (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    type TEXT NOT NULL,
    value INTEGER,
    icon TEXT NOT NULL,
    description TEXT
);

-- Append-only reward ledger
CREATE TABLE IF NOT EXISTS student_rewards (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    student_id INTEGER NOT NULL REFERENCES student_profiles(id) ON DELETE CASCADE,
    reward_id INTEGER NOT NULL REFERENCES rewards(id),
    earned_at TEXT NOT NULL DEFAULT ''
);
CREATE INDEX IF NOT EXISTS idx_student_rewards_student ON student_rewards(student_id);
"""

JSON_COLUMN_TYPES = {
    "sqlite": "TEXT",
    "postgres": "JSONB",
}

# (name, magical_name, icon, color, description)
DEFAULT_SUBJECTS = [
    ("Math", "Potions", "fas fa-flask", "purple", "Master magical formulas and number spells!"),
    ("Reading", "Spells", "fas fa-book-open", "blue", "Unlock the power of words and stories!"),
    ("Science", "Nature Magic", "fas fa-seedling", "green", "Discover the secrets of the natural world!"),
    ("Social Studies", "World Adventures", "fas fa-globe", "yellow", "Explore cultures and history around the world!"),
]

# (name, type, value, icon, description)
DEFAULT_REWARDS = [
    ("50 XP", "xp", 50, "fas fa-star", "Experience points"),
    ("100 XP", "xp", 100, "fas fa-star", "Experience points"),
    ("Math Master Badge", "badge", None, "fas fa-flask", "Potion brewing expert"),
    ("Reading Champion Badge", "badge", None, "fas fa-book", "Spell casting master"),
    ("Mini Game Unlock", "mini_game", None, "fas fa-gamepad", "Unlock a new mini game"),
    ("Avatar Unlock", "unlock", None, "fas fa-user-circle", "New avatar option"),
]


def schema_for(dialect: str) -> str:
    """Render SCHEMA with the JSON column type of the given dialect."""
    return SCHEMA.replace("JSON_DOC", JSON_COLUMN_TYPES[dialect])


def connect_sqlite(path: str) -> sqlite3.Connection:
    """Open a SQLite connection configured the way every adapter expects."""
    conn = sqlite3.connect(path, timeout=10)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    return conn


def init_db(conn, dialect: str = "sqlite") -> None:
    """Create all tables and seed the reference catalog when it is empty."""
    conn.executescript(schema_for(dialect))
    conn.commit()
    seed_catalog(conn)


def seed_catalog(conn) -> None:
    count = conn.execute("SELECT COUNT(*) AS n FROM subjects").fetchone()["n"]
    if count == 0:
        for row in DEFAULT_SUBJECTS:
            conn.execute(
                "INSERT INTO subjects (name, magical_name, icon, color, description) "
                "VALUES (?, ?, ?, ?, ?)",
                row,
            )
        logger.info("Seeded %d subjects", len(DEFAULT_SUBJECTS))

    count = conn.execute("SELECT COUNT(*) AS n FROM rewards").fetchone()["n"]
    if count == 0:
        for row in DEFAULT_REWARDS:
            conn.execute(
                "INSERT INTO rewards (name, type, value, icon, description) "
                "VALUES (?, ?, ?, ?, ?)",
                row,
            )
        logger.info("Seeded %d rewards", len(DEFAULT_REWARDS))
    conn.commit()
