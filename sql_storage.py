"""
SQL storage adapters: SQLite (JSON as TEXT) and PostgreSQL (JSONB).

Both adapters share one body of SQL written with ``?`` placeholders;
pg_compat translates it for psycopg2. Connections are opened per thread and
closed by ``close()`` (called on app-context teardown).
"""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
from contextlib import contextmanager
from typing import Any, Iterator, Mapping, Optional

from database import connect_sqlite, init_db
from errors import Conflict, InsufficientResource, Internal, InvalidArgument, NotFound
from models import (
    Reward,
    SpinResult,
    StudentProfile,
    StudentProgress,
    StudentReward,
    Subject,
    SurveyResponse,
    User,
    now_iso,
)
from storage import RewardChooser, Storage

logger = logging.getLogger(__name__)

_JSON_COLUMNS = {"interests", "accessibility_needs", "badges"}


class SQLStorage(Storage):
    """Shared implementation; subclasses provide connections and JSON adaptation."""

    dialect = "sqlite"
    integrity_errors: tuple[type[BaseException], ...] = ()
    database_errors: tuple[type[BaseException], ...] = ()

    def __init__(self, database: str, initial_spins: int = 3):
        super().__init__(initial_spins)
        self.database = database
        self._local = threading.local()
        init_db(self._conn(), self.dialect)

    # ── Connection handling ──────────────────────────────────────────

    def _connect(self):
        raise NotImplementedError

    def _conn(self):
        conn = getattr(self._local, "conn", None)
        if conn is None:
            conn = self._connect()
            self._local.conn = conn
        return conn

    def close(self) -> None:
        conn = getattr(self._local, "conn", None)
        if conn is not None:
            self._local.conn = None
            conn.close()

    @contextmanager
    def _transaction(self) -> Iterator[Any]:
        conn = self._conn()
        try:
            yield conn
            conn.commit()
        except self.integrity_errors:
            conn.rollback()
            raise
        except OverflowError as exc:
            conn.rollback()
            raise InvalidArgument("Integer value out of range") from exc
        except self.database_errors as exc:
            conn.rollback()
            raise Internal("Storage failure") from exc
        except BaseException:
            conn.rollback()
            raise

    def _dump_json(self, value: Any) -> Any:
        return json.dumps(value)

    @staticmethod
    def _load_json(value: Any, default: Any = None) -> Any:
        if value is None:
            return default
        if isinstance(value, (str, bytes)):
            return json.loads(value)
        return value

    # ── Row mapping ──────────────────────────────────────────────────

    @staticmethod
    def _user(row) -> Optional[User]:
        if row is None:
            return None
        return User(
            id=row["id"],
            username=row["username"],
            display_name=row["display_name"],
            role=row["role"],
            email=row["email"],
            password_hash=row["password_hash"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def _profile(self, row) -> Optional[StudentProfile]:
        if row is None:
            return None
        return StudentProfile(
            id=row["id"],
            user_id=row["user_id"],
            current_mood=row["current_mood"],
            learning_style=row["learning_style"],
            interests=self._load_json(row["interests"], []),
            accessibility_needs=self._load_json(row["accessibility_needs"], {}),
            level=row["level"],
            total_xp=row["total_xp"],
            available_spins=row["available_spins"],
            streak=row["streak"],
            badges=self._load_json(row["badges"], []),
            updated_at=row["updated_at"],
        )

    @staticmethod
    def _subject(row) -> Optional[Subject]:
        if row is None:
            return None
        return Subject(
            id=row["id"],
            name=row["name"],
            magical_name=row["magical_name"],
            icon=row["icon"],
            color=row["color"],
            description=row["description"],
        )

    @staticmethod
    def _progress(row) -> Optional[StudentProgress]:
        if row is None:
            return None
        return StudentProgress(
            id=row["id"],
            student_id=row["student_id"],
            subject_id=row["subject_id"],
            progress=row["progress"],
            completed_tasks=row["completed_tasks"],
            total_tasks=row["total_tasks"],
            last_accessed=row["last_accessed"],
        )

    def _survey(self, row) -> Optional[SurveyResponse]:
        if row is None:
            return None
        return SurveyResponse(
            id=row["id"],
            student_id=row["student_id"],
            responses=self._load_json(row["responses"], {}),
            analyzed_data=self._load_json(row["analyzed_data"]),
            created_at=row["created_at"],
        )

    @staticmethod
    def _reward(row) -> Optional[Reward]:
        if row is None:
            return None
        return Reward(
            id=row["id"],
            name=row["name"],
            type=row["type"],
            value=row["value"],
            icon=row["icon"],
            description=row["description"],
        )

    @staticmethod
    def _grant(row) -> Optional[StudentReward]:
        if row is None:
            return None
        return StudentReward(
            id=row["id"],
            student_id=row["student_id"],
            reward_id=row["reward_id"],
            earned_at=row["earned_at"],
        )

    # ── Users ────────────────────────────────────────────────────────

    def get_user(self, user_id: int) -> Optional[User]:
        with self._transaction() as conn:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        return self._user(row)

    def get_user_by_username(self, username: str) -> Optional[User]:
        with self._transaction() as conn:
            row = conn.execute("SELECT * FROM users WHERE username = ?", (username,)).fetchone()
        return self._user(row)

    def upsert_user(self, data: Mapping[str, Any]) -> User:
        values = self._user_values(data)
        user_id = data.get("id")
        now = now_iso()
        try:
            with self._transaction() as conn:
                existing = None
                if user_id is not None:
                    existing = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
                if existing is None:
                    cur = conn.execute(
                        "INSERT INTO users (username, email, display_name, role, password_hash, "
                        "created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?, ?)",
                        (values["username"], values["email"], values["display_name"],
                         values["role"], values["password_hash"], now, now),
                    )
                    user_id = cur.lastrowid
                else:
                    conn.execute(
                        "UPDATE users SET username = ?, email = ?, display_name = ?, role = ?, "
                        "password_hash = ?, updated_at = ? WHERE id = ?",
                        (values["username"], values["email"], values["display_name"], values["role"],
                         values["password_hash"] or existing["password_hash"], now, user_id),
                    )
                row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        except self.integrity_errors as exc:
            raise Conflict("Username or email already in use") from exc
        return self._user(row)

    # ── Student profiles ─────────────────────────────────────────────

    def get_student_profile(self, user_id: int) -> Optional[StudentProfile]:
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT * FROM student_profiles WHERE user_id = ?", (user_id,)
            ).fetchone()
        return self._profile(row)

    def get_student_profile_by_id(self, profile_id: int) -> Optional[StudentProfile]:
        with self._transaction() as conn:
            row = conn.execute("SELECT * FROM student_profiles WHERE id = ?", (profile_id,)).fetchone()
        return self._profile(row)

    def create_student_profile(self, data: Mapping[str, Any]) -> StudentProfile:
        values = self._profile_values(data)
        try:
            with self._transaction() as conn:
                if conn.execute("SELECT id FROM users WHERE id = ?", (values["user_id"],)).fetchone() is None:
                    raise NotFound("User not found")
                cur = conn.execute(
                    "INSERT INTO student_profiles (user_id, current_mood, learning_style, interests, "
                    "accessibility_needs, level, total_xp, available_spins, streak, badges, updated_at) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    (values["user_id"], values["current_mood"], values["learning_style"],
                     self._dump_json(values["interests"]), self._dump_json(values["accessibility_needs"]),
                     values["level"], values["total_xp"], values["available_spins"], values["streak"],
                     self._dump_json(values["badges"]), now_iso()),
                )
                row = conn.execute("SELECT * FROM student_profiles WHERE id = ?", (cur.lastrowid,)).fetchone()
        except self.integrity_errors as exc:
            raise Conflict("User already has a student profile") from exc
        logger.info("Created student profile %s for user %s", row["id"], values["user_id"])
        return self._profile(row)

    def update_student_profile(self, profile_id: int,
                               updates: Mapping[str, Any]) -> Optional[StudentProfile]:
        values = self._profile_updates(updates)
        assignments = [f"{column} = ?" for column in values]
        params = [self._dump_json(v) if k in _JSON_COLUMNS else v for k, v in values.items()]
        assignments.append("updated_at = ?")
        params.extend([now_iso(), profile_id])
        with self._transaction() as conn:
            cur = conn.execute(
                f"UPDATE student_profiles SET {', '.join(assignments)} WHERE id = ?", tuple(params)
            )
            if cur.rowcount == 0:
                return None
            row = conn.execute("SELECT * FROM student_profiles WHERE id = ?", (profile_id,)).fetchone()
        return self._profile(row)

    # ── Subjects ─────────────────────────────────────────────────────

    def get_all_subjects(self) -> list[Subject]:
        with self._transaction() as conn:
            rows = conn.execute("SELECT * FROM subjects ORDER BY id").fetchall()
        return [self._subject(r) for r in rows]

    def get_subject(self, subject_id: int) -> Optional[Subject]:
        with self._transaction() as conn:
            row = conn.execute("SELECT * FROM subjects WHERE id = ?", (subject_id,)).fetchone()
        return self._subject(row)

    # ── Progress ─────────────────────────────────────────────────────

    def get_student_progress(self, student_id: int) -> list[StudentProgress]:
        with self._transaction() as conn:
            rows = conn.execute(
                "SELECT * FROM student_progress WHERE student_id = ? ORDER BY subject_id",
                (student_id,),
            ).fetchall()
        return [self._progress(r) for r in rows]

    def get_student_progress_by_subject(self, student_id: int,
                                        subject_id: int) -> Optional[StudentProgress]:
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT * FROM student_progress WHERE student_id = ? AND subject_id = ?",
                (student_id, subject_id),
            ).fetchone()
        return self._progress(row)

    def upsert_student_progress(self, data: Mapping[str, Any]) -> StudentProgress:
        values = self._progress_values(data)
        student_id, subject_id = values["student_id"], values["subject_id"]
        with self._transaction() as conn:
            self._require_profile(conn, student_id)
            if conn.execute("SELECT id FROM subjects WHERE id = ?", (subject_id,)).fetchone() is None:
                raise NotFound("Subject not found")
            conn.execute(
                "INSERT INTO student_progress "
                "(student_id, subject_id, progress, completed_tasks, total_tasks, last_accessed) "
                "VALUES (?, ?, COALESCE(?, 0), COALESCE(?, 0), COALESCE(?, 0), ?) "
                "ON CONFLICT (student_id, subject_id) DO UPDATE SET "
                "progress = COALESCE(?, student_progress.progress), "
                "completed_tasks = COALESCE(?, student_progress.completed_tasks), "
                "total_tasks = COALESCE(?, student_progress.total_tasks), "
                "last_accessed = ?",
                (student_id, subject_id, values["progress"], values["completed_tasks"],
                 values["total_tasks"], now_iso(),
                 values["progress"], values["completed_tasks"], values["total_tasks"], now_iso()),
            )
            row = conn.execute(
                "SELECT * FROM student_progress WHERE student_id = ? AND subject_id = ?",
                (student_id, subject_id),
            ).fetchone()
        return self._progress(row)

    # ── Surveys ──────────────────────────────────────────────────────

    def create_survey_response(self, data: Mapping[str, Any]) -> SurveyResponse:
        values = self._survey_values(data)
        with self._transaction() as conn:
            self._require_profile(conn, values["student_id"])
            analyzed = values["analyzed_data"]
            cur = conn.execute(
                "INSERT INTO survey_responses (student_id, responses, analyzed_data, created_at) "
                "VALUES (?, ?, ?, ?)",
                (values["student_id"], self._dump_json(values["responses"]),
                 self._dump_json(analyzed) if analyzed is not None else None, now_iso()),
            )
            row = conn.execute("SELECT * FROM survey_responses WHERE id = ?", (cur.lastrowid,)).fetchone()
        return self._survey(row)

    def get_latest_survey_response(self, student_id: int) -> Optional[SurveyResponse]:
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT * FROM survey_responses WHERE student_id = ? "
                "ORDER BY created_at DESC, id DESC LIMIT 1",
                (student_id,),
            ).fetchone()
        return self._survey(row)

    # ── Rewards ──────────────────────────────────────────────────────

    def get_all_rewards(self) -> list[Reward]:
        with self._transaction() as conn:
            rows = conn.execute("SELECT * FROM rewards ORDER BY id").fetchall()
        return [self._reward(r) for r in rows]

    def get_reward(self, reward_id: int) -> Optional[Reward]:
        with self._transaction() as conn:
            row = conn.execute("SELECT * FROM rewards WHERE id = ?", (reward_id,)).fetchone()
        return self._reward(row)

    def add_student_reward(self, data: Mapping[str, Any]) -> StudentReward:
        values = self._grant_values(data)
        with self._transaction() as conn:
            self._require_profile(conn, values["student_id"])
            if conn.execute("SELECT id FROM rewards WHERE id = ?", (values["reward_id"],)).fetchone() is None:
                raise NotFound("Reward not found")
            return self._insert_grant(conn, values["student_id"], values["reward_id"])

    def get_student_rewards(self, student_id: int) -> list[StudentReward]:
        with self._transaction() as conn:
            rows = conn.execute(
                "SELECT * FROM student_rewards WHERE student_id = ? ORDER BY earned_at, id",
                (student_id,),
            ).fetchall()
        return [self._grant(r) for r in rows]

    # ── XP and spins ─────────────────────────────────────────────────

    def update_student_xp(self, student_id: int, delta: int) -> StudentProfile:
        with self._transaction() as conn:
            self._apply_xp(conn, student_id, delta)
            return self._require_profile(conn, student_id)

    def update_available_spins(self, student_id: int, spins: int) -> StudentProfile:
        spins = self._check_spin_count(spins)
        with self._transaction() as conn:
            cur = conn.execute(
                "UPDATE student_profiles SET available_spins = ?, updated_at = ? WHERE id = ?",
                (spins, now_iso(), student_id),
            )
            if cur.rowcount == 0:
                raise NotFound("Student profile not found")
            return self._require_profile(conn, student_id)

    def add_spins(self, student_id: int, amount: int) -> StudentProfile:
        amount = self._check_spin_count(amount)
        with self._transaction() as conn:
            cur = conn.execute(
                "UPDATE student_profiles SET available_spins = available_spins + ?, updated_at = ? "
                "WHERE id = ?",
                (amount, now_iso(), student_id),
            )
            if cur.rowcount == 0:
                raise NotFound("Student profile not found")
            return self._require_profile(conn, student_id)

    def redeem_spin(self, student_id: int, choose: RewardChooser) -> SpinResult:
        rewards = self.get_all_rewards()
        if not rewards:
            raise NotFound("Reward catalog is empty")
        with self._transaction() as conn:
            # The conditional decrement is the gate: concurrent spins cannot both pass it.
            cur = conn.execute(
                "UPDATE student_profiles SET available_spins = available_spins - 1, updated_at = ? "
                "WHERE id = ? AND available_spins > 0",
                (now_iso(), student_id),
            )
            if cur.rowcount == 0:
                self._require_profile(conn, student_id)
                raise InsufficientResource("No spins available")

            reward = choose(rewards)
            grant = self._insert_grant(conn, student_id, reward.id)
            if reward.grants_xp:
                self._apply_xp(conn, student_id, reward.value)
            if reward.type == "badge":
                profile = self._require_profile(conn, student_id)
                if reward.name not in profile.badges:
                    conn.execute(
                        "UPDATE student_profiles SET badges = ? WHERE id = ?",
                        (self._dump_json(profile.badges + [reward.name]), student_id),
                    )
            profile = self._require_profile(conn, student_id)
        return SpinResult(reward=reward, grant=grant, profile=profile)

    # ── Internals (run inside an open transaction) ───────────────────

    def _require_profile(self, conn, student_id: int) -> StudentProfile:
        row = conn.execute("SELECT * FROM student_profiles WHERE id = ?", (student_id,)).fetchone()
        if row is None:
            raise NotFound("Student profile not found")
        return self._profile(row)

    def _apply_xp(self, conn, student_id: int, delta: int) -> None:
        if isinstance(delta, bool) or not isinstance(delta, int):
            raise InvalidArgument("XP delta must be an integer")
        cur = conn.execute(
            "UPDATE student_profiles SET "
            "total_xp = CASE WHEN total_xp + ? < 0 THEN 0 ELSE total_xp + ? END, "
            "level = (CASE WHEN total_xp + ? < 0 THEN 0 ELSE total_xp + ? END) / 100 + 1, "
            "updated_at = ? WHERE id = ?",
            (delta, delta, delta, delta, now_iso(), student_id),
        )
        if cur.rowcount == 0:
            raise NotFound("Student profile not found")

    def _insert_grant(self, conn, student_id: int, reward_id: int) -> StudentReward:
        cur = conn.execute(
            "INSERT INTO student_rewards (student_id, reward_id, earned_at) VALUES (?, ?, ?)",
            (student_id, reward_id, now_iso()),
        )
        row = conn.execute("SELECT * FROM student_rewards WHERE id = ?", (cur.lastrowid,)).fetchone()
        return self._grant(row)


class SQLiteStorage(SQLStorage):
    """SQLite adapter. Needs a file path: every thread opens its own connection."""

    backend_name = "sqlite"
    dialect = "sqlite"
    integrity_errors = (sqlite3.IntegrityError,)
    database_errors = (sqlite3.DatabaseError,)

    def _connect(self):
        return connect_sqlite(self.database)


class PostgresStorage(SQLStorage):
    """PostgreSQL adapter; JSON fields live in JSONB columns."""

    backend_name = "postgres"
    dialect = "postgres"

    def __init__(self, database: str, initial_spins: int = 3):
        import psycopg2

        self.integrity_errors = (psycopg2.IntegrityError,)
        self.database_errors = (psycopg2.DatabaseError,)
        super().__init__(database, initial_spins)

    def _connect(self):
        from pg_compat import connect_pg

        return connect_pg(self.database)

    def _dump_json(self, value: Any) -> Any:
        from pg_compat import json_param

        return json_param(value)
