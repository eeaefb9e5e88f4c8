"""SQLite schema management (code-first approach)."""

import logging

from taakbeheer.core import db_client


logger = logging.getLogger(__name__)


# Central list of all tables in the schema
COLLECTIONS = [
    "users",
    "tasks",
    "task_coordinators",
    "open_tasks",
    "alias_change_proposals",
    "task_templates",
    "audit_logs",
    "notification_events",
]


_TABLES: dict[str, str] = {
    "users": """
        CREATE TABLE IF NOT EXISTS users (
            alias TEXT PRIMARY KEY,
            email TEXT,
            role TEXT NOT NULL DEFAULT 'LID' CHECK (role IN ('LID', 'COORDINATOR', 'BESTUUR')),
            is_active INTEGER NOT NULL DEFAULT 1,
            created_at TEXT NOT NULL
        )
    """,
    "tasks": """
        CREATE TABLE IF NOT EXISTS tasks (
            id TEXT PRIMARY KEY,
            title TEXT NOT NULL,
            description TEXT NOT NULL DEFAULT '',
            team_name TEXT,
            parent_id TEXT REFERENCES tasks (id),
            coordination_type TEXT CHECK (
                coordination_type IS NULL OR coordination_type IN ('DELEGEREN', 'ORGANISEREN')
            ),
            points INTEGER NOT NULL DEFAULT 0 CHECK (points >= 0),
            status TEXT NOT NULL DEFAULT 'BESCHIKBAAR' CHECK (status IN ('BESCHIKBAAR', 'TOEGEWEZEN', 'GEREED')),
            date TEXT,
            start_time TEXT,
            end_time TEXT,
            location TEXT,
            created_at TEXT NOT NULL
        )
    """,
    # Coordinator links follow alias renames through ON UPDATE CASCADE.
    "task_coordinators": """
        CREATE TABLE IF NOT EXISTS task_coordinators (
            task_id TEXT NOT NULL REFERENCES tasks (id) ON DELETE CASCADE,
            user_alias TEXT NOT NULL REFERENCES users (alias) ON UPDATE CASCADE,
            created_at TEXT NOT NULL,
            PRIMARY KEY (task_id, user_alias)
        )
    """,
    "open_tasks": """
        CREATE TABLE IF NOT EXISTS open_tasks (
            id TEXT PRIMARY KEY,
            task_id TEXT NOT NULL REFERENCES tasks (id),
            proposer_alias TEXT NOT NULL REFERENCES users (alias) ON UPDATE CASCADE,
            proposed_alias TEXT REFERENCES users (alias) ON UPDATE CASCADE,
            status TEXT NOT NULL DEFAULT 'OPEN' CHECK (status IN ('OPEN', 'AFGEWEZEN')),
            created_at TEXT NOT NULL
        )
    """,
    "alias_change_proposals": """
        CREATE TABLE IF NOT EXISTS alias_change_proposals (
            id TEXT PRIMARY KEY,
            requester_alias TEXT NOT NULL REFERENCES users (alias) ON UPDATE CASCADE ON DELETE CASCADE,
            current_alias TEXT NOT NULL,
            requested_alias TEXT NOT NULL,
            status TEXT NOT NULL DEFAULT 'OPEN' CHECK (status IN ('OPEN', 'AFGEWEZEN')),
            created_at TEXT NOT NULL
        )
    """,
    "task_templates": """
        CREATE TABLE IF NOT EXISTS task_templates (
            id TEXT PRIMARY KEY,
            title TEXT NOT NULL,
            description TEXT NOT NULL,
            parent_template_id TEXT REFERENCES task_templates (id),
            default_points INTEGER CHECK (default_points IS NULL OR default_points >= 0),
            created_at TEXT NOT NULL
        )
    """,
    "audit_logs": """
        CREATE TABLE IF NOT EXISTS audit_logs (
            id TEXT PRIMARY KEY,
            actor_alias TEXT NOT NULL,
            action_type TEXT NOT NULL,
            entity_type TEXT NOT NULL,
            entity_id TEXT NOT NULL,
            payload_json TEXT,
            created_at TEXT NOT NULL
        )
    """,
    "notification_events": """
        CREATE TABLE IF NOT EXISTS notification_events (
            id TEXT PRIMARY KEY,
            user_alias TEXT NOT NULL,
            category TEXT NOT NULL,
            subject TEXT NOT NULL,
            body TEXT NOT NULL,
            created_at TEXT NOT NULL,
            delivered_at TEXT
        )
    """,
}

# Uniqueness constraints are the serialization points for concurrent proposals.
_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_tasks_parent_id ON tasks (parent_id)",
    "CREATE INDEX IF NOT EXISTS idx_task_coordinators_user_alias ON task_coordinators (user_alias)",
    "CREATE INDEX IF NOT EXISTS idx_open_tasks_task_id ON open_tasks (task_id)",
    (
        "CREATE UNIQUE INDEX IF NOT EXISTS idx_open_tasks_one_open_per_proposer "
        "ON open_tasks (task_id, proposer_alias) WHERE status = 'OPEN'"
    ),
    (
        "CREATE UNIQUE INDEX IF NOT EXISTS idx_alias_proposals_one_open_per_requester "
        "ON alias_change_proposals (requester_alias) WHERE status = 'OPEN'"
    ),
    (
        "CREATE UNIQUE INDEX IF NOT EXISTS idx_alias_proposals_one_open_per_requested "
        "ON alias_change_proposals (requested_alias) WHERE status = 'OPEN'"
    ),
    "CREATE INDEX IF NOT EXISTS idx_task_templates_parent ON task_templates (parent_template_id)",
    "CREATE INDEX IF NOT EXISTS idx_audit_logs_entity ON audit_logs (entity_type, entity_id)",
    "CREATE INDEX IF NOT EXISTS idx_notification_events_user ON notification_events (user_alias, delivered_at)",
]


async def init_db(*, db_path: str | None = None) -> None:
    """Create all tables and indexes if they do not exist yet."""
    async with db_client.transaction(db_path=db_path) as tx:
        for name in COLLECTIONS:
            await tx.execute_ddl(_TABLES[name])
        for statement in _INDEXES:
            await tx.execute_ddl(statement)

    logger.info("Schema initialized", extra={"tables": len(COLLECTIONS), "indexes": len(_INDEXES)})
