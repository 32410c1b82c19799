"""Database initialization and connection management."""
import os
import sqlite3
from pathlib import Path

DEFAULT_DB_PATH = os.environ.get(
    "IELTS_PREP_DB", str(Path.home() / ".ielts_prep" / "prep.db")
)

SCHEMA = """
CREATE TABLE IF NOT EXISTS passages (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    title TEXT NOT NULL,
    content TEXT NOT NULL,
    section TEXT NOT NULL,
    metadata TEXT
);

CREATE TABLE IF NOT EXISTS questions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    section TEXT NOT NULL,
    part INTEGER,
    type TEXT NOT NULL,
    content TEXT NOT NULL,
    options TEXT,
    correct_answer TEXT,
    explanation TEXT,
    passage_id INTEGER REFERENCES passages(id),
    difficulty INTEGER DEFAULT 1,
    tags TEXT DEFAULT '[]'
);

CREATE TABLE IF NOT EXISTS tests (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    title TEXT NOT NULL,
    structure TEXT NOT NULL,
    is_system INTEGER DEFAULT 0,
    created_at TEXT
);

CREATE TABLE IF NOT EXISTS attempts (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL,
    test_id INTEGER REFERENCES tests(id) ON DELETE SET NULL,
    status TEXT NOT NULL DEFAULT 'in_progress',
    score TEXT,
    started_at TEXT,
    completed_at TEXT,
    time_spent INTEGER
);

CREATE TABLE IF NOT EXISTS attempt_answers (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    attempt_id INTEGER NOT NULL REFERENCES attempts(id),
    question_id INTEGER NOT NULL REFERENCES questions(id),
    answer TEXT,
    is_correct INTEGER DEFAULT 0,
    score INTEGER DEFAULT 0,
    ai_feedback TEXT,
    UNIQUE(attempt_id, question_id)
);

CREATE TABLE IF NOT EXISTS study_plans (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL,
    target_band INTEGER NOT NULL,
    exam_date TEXT NOT NULL,
    plan_data TEXT NOT NULL,
    progress TEXT,
    created_at TEXT
);
"""


def get_connection(db_path: str = DEFAULT_DB_PATH) -> sqlite3.Connection:
    """Return a SQLite connection with row factory and foreign keys enabled."""
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


def init_db(db_path: str = DEFAULT_DB_PATH) -> None:
    """Initialize the database, creating all tables if they don't exist."""
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    conn = get_connection(db_path)
    conn.executescript(SCHEMA)
    conn.commit()
    conn.close()
