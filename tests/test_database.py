"""Tests for database.py — schema creation and catalog seeding."""

from __future__ import annotations

import sqlite3

import pytest

from database import DEFAULT_REWARDS, DEFAULT_SUBJECTS, connect_sqlite, init_db, schema_for


@pytest.fixture
def conn(tmp_path):
    conn = connect_sqlite(str(tmp_path / "schema.db"))
    init_db(conn)
    yield conn
    conn.close()


class TestSchema:
    def test_tables_created(self, conn):
        tables = {r["name"] for r in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")}
        for table in ("users", "student_profiles", "subjects", "student_progress",
                      "survey_responses", "rewards", "student_rewards"):
            assert table in tables

    def test_pragmas(self, conn):
        assert conn.execute("PRAGMA foreign_keys").fetchone()[0] == 1
        assert conn.execute("PRAGMA journal_mode").fetchone()[0] == "wal"

    def test_json_column_types(self):
        assert "JSON_DOC" not in schema_for("sqlite")
        assert "interests JSONB" in schema_for("postgres")
        assert "interests TEXT" in schema_for("sqlite")

    def test_init_is_idempotent(self, conn):
        init_db(conn)
        assert conn.execute("SELECT COUNT(*) FROM subjects").fetchone()[0] == len(DEFAULT_SUBJECTS)
        assert conn.execute("SELECT COUNT(*) FROM rewards").fetchone()[0] == len(DEFAULT_REWARDS)


class TestConstraints:
    def _user_and_profile(self, conn):
        conn.execute("INSERT INTO users (username) VALUES ('u1')")
        conn.execute("INSERT INTO student_profiles (user_id) VALUES (1)")
        conn.commit()

    def test_spins_cannot_go_negative(self, conn):
        self._user_and_profile(conn)
        with pytest.raises(sqlite3.IntegrityError):
            conn.execute("UPDATE student_profiles SET available_spins = -1 WHERE id = 1")

    def test_progress_unique_per_subject(self, conn):
        self._user_and_profile(conn)
        conn.execute("INSERT INTO student_progress (student_id, subject_id) VALUES (1, 1)")
        with pytest.raises(sqlite3.IntegrityError):
            conn.execute("INSERT INTO student_progress (student_id, subject_id) VALUES (1, 1)")

    def test_profile_requires_existing_user(self, conn):
        with pytest.raises(sqlite3.IntegrityError):
            conn.execute("INSERT INTO student_profiles (user_id) VALUES (42)")

    def test_default_spin_count(self, conn):
        self._user_and_profile(conn)
        row = conn.execute("SELECT available_spins, level FROM student_profiles WHERE id = 1").fetchone()
        assert (row["available_spins"], row["level"]) == (3, 1)
