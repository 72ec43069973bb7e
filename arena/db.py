"""
arena/db.py - SQLite storage for admin-editable reward configuration.

Three tables back the game-config admin screens:
  - spa_reward_milestones       SPA paid out for hitting a milestone
  - tournament_reward_structures  SPA/ELO per placement, by tournament type and rank
  - elo_calculation_rules       ELO adjustments applied on top of match ELO

All queries go through ArenaDB. One instance per server lifetime,
backed by a single SQLite file (or :memory: for tests).
"""

import json
import sqlite3
import uuid
from datetime import datetime, timezone
from typing import Any

SPA_MILESTONES = "spa_reward_milestones"
TOURNAMENT_REWARDS = "tournament_reward_structures"
ELO_RULES = "elo_calculation_rules"

# Columns stored as JSON text / as 0-1 integers
_JSON_COLUMNS = {
    SPA_MILESTONES: ("bonus_conditions",),
    TOURNAMENT_REWARDS: ("additional_rewards",),
    ELO_RULES: ("conditions",),
}
_BOOL_COLUMNS = {
    SPA_MILESTONES: ("is_active", "is_repeatable"),
    TOURNAMENT_REWARDS: ("is_active",),
    ELO_RULES: ("is_active",),
}
_WRITABLE_COLUMNS = {
    SPA_MILESTONES: (
        "milestone_name", "milestone_type", "requirement_value", "spa_reward",
        "bonus_conditions", "is_active", "is_repeatable",
    ),
    TOURNAMENT_REWARDS: (
        "position_name", "tournament_type", "rank_category", "spa_reward",
        "elo_reward", "additional_rewards", "is_active",
    ),
    ELO_RULES: (
        "rule_name", "rule_type", "base_value", "multiplier", "value_formula",
        "conditions", "priority", "is_active",
    ),
}
_ORDER_BY = {
    SPA_MILESTONES: "milestone_type ASC, requirement_value ASC",
    TOURNAMENT_REWARDS: "tournament_type ASC, position_name ASC",
    ELO_RULES: "rule_type ASC, priority ASC",
}


class ArenaDB:
    """Thin wrapper around SQLite for reward configuration storage."""

    def __init__(self, path: str = "arena.db"):
        self._conn = sqlite3.connect(path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._create_tables()

    def _create_tables(self) -> None:
        self._conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS spa_reward_milestones (
                id TEXT PRIMARY KEY,
                milestone_name TEXT NOT NULL,
                milestone_type TEXT NOT NULL,
                requirement_value INTEGER NOT NULL,
                spa_reward INTEGER NOT NULL,
                bonus_conditions TEXT,
                is_active INTEGER DEFAULT 1,
                is_repeatable INTEGER DEFAULT 0,
                created_at TEXT,
                updated_at TEXT
            );

            CREATE TABLE IF NOT EXISTS tournament_reward_structures (
                id TEXT PRIMARY KEY,
                position_name TEXT NOT NULL,
                tournament_type TEXT NOT NULL,
                rank_category TEXT NOT NULL,
                spa_reward INTEGER NOT NULL,
                elo_reward INTEGER NOT NULL,
                additional_rewards TEXT,
                is_active INTEGER DEFAULT 1,
                created_at TEXT,
                updated_at TEXT
            );

            CREATE TABLE IF NOT EXISTS elo_calculation_rules (
                id TEXT PRIMARY KEY,
                rule_name TEXT NOT NULL,
                rule_type TEXT NOT NULL,
                base_value REAL NOT NULL,
                multiplier REAL DEFAULT 1.0,
                value_formula TEXT NOT NULL,
                conditions TEXT,
                priority INTEGER DEFAULT 0,
                is_active INTEGER DEFAULT 1,
                created_at TEXT,
                updated_at TEXT
            );
            """
        )

    # ------------------------------------------------------------------
    # SPA milestones
    # ------------------------------------------------------------------

    def list_spa_milestones(self, active_only: bool = False) -> list[dict[str, Any]]:
        return self._list(SPA_MILESTONES, active_only)

    def get_spa_milestone(self, milestone_id: str) -> dict[str, Any] | None:
        return self._get(SPA_MILESTONES, milestone_id)

    def create_spa_milestone(self, data: dict[str, Any]) -> dict[str, Any]:
        return self._insert(SPA_MILESTONES, data)

    def update_spa_milestone(self, milestone_id: str, data: dict[str, Any]) -> dict[str, Any] | None:
        return self._update(SPA_MILESTONES, milestone_id, data)

    def delete_spa_milestone(self, milestone_id: str) -> bool:
        return self._delete(SPA_MILESTONES, milestone_id)

    # ------------------------------------------------------------------
    # Tournament reward structures
    # ------------------------------------------------------------------

    def list_tournament_rewards(self, active_only: bool = False) -> list[dict[str, Any]]:
        return self._list(TOURNAMENT_REWARDS, active_only)

    def get_tournament_reward(self, reward_id: str) -> dict[str, Any] | None:
        return self._get(TOURNAMENT_REWARDS, reward_id)

    def create_tournament_reward(self, data: dict[str, Any]) -> dict[str, Any]:
        return self._insert(TOURNAMENT_REWARDS, data)

    def update_tournament_reward(self, reward_id: str, data: dict[str, Any]) -> dict[str, Any] | None:
        return self._update(TOURNAMENT_REWARDS, reward_id, data)

    def delete_tournament_reward(self, reward_id: str) -> bool:
        return self._delete(TOURNAMENT_REWARDS, reward_id)

    def find_tournament_reward(
        self, tournament_type: str, rank_category: str, position_name: str
    ) -> dict[str, Any] | None:
        """Active override for one (type, rank, placement), if an admin set one."""
        row = self._conn.execute(
            "SELECT * FROM tournament_reward_structures "
            "WHERE tournament_type = ? AND rank_category = ? AND position_name = ? "
            "AND is_active = 1 ORDER BY updated_at DESC, rowid DESC LIMIT 1",
            (tournament_type, rank_category, position_name),
        ).fetchone()
        return self._decode(TOURNAMENT_REWARDS, row) if row else None

    # ------------------------------------------------------------------
    # ELO rules
    # ------------------------------------------------------------------

    def list_elo_rules(self, active_only: bool = False) -> list[dict[str, Any]]:
        return self._list(ELO_RULES, active_only)

    def get_elo_rule(self, rule_id: str) -> dict[str, Any] | None:
        return self._get(ELO_RULES, rule_id)

    def create_elo_rule(self, data: dict[str, Any]) -> dict[str, Any]:
        return self._insert(ELO_RULES, data)

    def update_elo_rule(self, rule_id: str, data: dict[str, Any]) -> dict[str, Any] | None:
        return self._update(ELO_RULES, rule_id, data)

    def delete_elo_rule(self, rule_id: str) -> bool:
        return self._delete(ELO_RULES, rule_id)

    # ------------------------------------------------------------------
    # Stats
    # ------------------------------------------------------------------

    def count(self, table: str) -> int:
        if table not in _WRITABLE_COLUMNS:
            raise ValueError(f"Unknown table: {table}")
        return self._conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _list(self, table: str, active_only: bool) -> list[dict[str, Any]]:
        where = "WHERE is_active = 1 " if active_only else ""
        rows = self._conn.execute(
            f"SELECT * FROM {table} {where}ORDER BY {_ORDER_BY[table]}"
        ).fetchall()
        return [self._decode(table, row) for row in rows]

    def _get(self, table: str, record_id: str) -> dict[str, Any] | None:
        row = self._conn.execute(f"SELECT * FROM {table} WHERE id = ?", (record_id,)).fetchone()
        return self._decode(table, row) if row else None

    def _insert(self, table: str, data: dict[str, Any]) -> dict[str, Any]:
        values = self._encode(table, data)
        record_id = str(uuid.uuid4())
        now = _now()
        columns = ["id", *values.keys(), "created_at", "updated_at"]
        placeholders = ", ".join("?" for _ in columns)
        self._conn.execute(
            f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({placeholders})",
            (record_id, *values.values(), now, now),
        )
        self._conn.commit()
        return self._get(table, record_id)

    def _update(self, table: str, record_id: str, data: dict[str, Any]) -> dict[str, Any] | None:
        if self._get(table, record_id) is None:
            return None
        values = self._encode(table, data)
        if values:
            assignments = ", ".join(f"{col} = ?" for col in values)
            self._conn.execute(
                f"UPDATE {table} SET {assignments}, updated_at = ? WHERE id = ?",
                (*values.values(), _now(), record_id),
            )
            self._conn.commit()
        return self._get(table, record_id)

    def _delete(self, table: str, record_id: str) -> bool:
        cursor = self._conn.execute(f"DELETE FROM {table} WHERE id = ?", (record_id,))
        self._conn.commit()
        return cursor.rowcount > 0

    def _encode(self, table: str, data: dict[str, Any]) -> dict[str, Any]:
        """Keep writable columns only; JSON-encode / int-encode as stored."""
        values = {}
        for col in _WRITABLE_COLUMNS[table]:
            if col not in data:
                continue
            value = data[col]
            if col in _JSON_COLUMNS[table] and value is not None:
                value = json.dumps(value)
            elif col in _BOOL_COLUMNS[table] and value is not None:
                value = int(bool(value))
            values[col] = value
        return values

    def _decode(self, table: str, row: sqlite3.Row) -> dict[str, Any]:
        record = dict(row)
        for col in _JSON_COLUMNS[table]:
            if record.get(col) is not None:
                record[col] = json.loads(record[col])
        for col in _BOOL_COLUMNS[table]:
            if record.get(col) is not None:
                record[col] = bool(record[col])
        return record


def _now() -> str:
    """ISO timestamp in UTC."""
    return datetime.now(timezone.utc).isoformat()
