#!/usr/bin/env python3
"""
Graphēon Auth Demo Seed Data
============================

Populates an auth database with a small, realistic tenant:

  users    admin, alice (analyst), bob (operator)
  groups   analysts      READ on the 'person' vertices of the graph
           operators     READ + WRITE on every vertex and edge
  project  demo          admin group -> admin, op group -> bob,
                         bound to the configured graph

and prints the permissions each user resolves to.

Usage:
    python scripts/seed_demo_data.py                  # seed data/auth.db
    python scripts/seed_demo_data.py --db /tmp/a.db   # use a specific file
    python scripts/seed_demo_data.py --graph g1       # seed another graph

Requirements:
    Run from the backend/ directory (or set PYTHONPATH).
"""

import argparse
import json
import logging
import sys
from pathlib import Path

# ── Ensure we can import project modules ────────────────────────────
SCRIPT_DIR = Path(__file__).resolve().parent
BACKEND_DIR = SCRIPT_DIR.parent
sys.path.insert(0, str(BACKEND_DIR))

from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from auth.credentials import hash_password  # noqa: E402
from auth.manager import AuthManager  # noqa: E402
from config import settings  # noqa: E402
from models import Access, Belong, Group, Project, Target, User  # noqa: E402
from schemas import Permission, Resource, ResourceType  # noqa: E402
from utils.audit import audit  # noqa: E402
from utils.logging_utils import log_step, setup_logging  # noqa: E402

logger = logging.getLogger("seed")

# ── Default DB path ─────────────────────────────────────────────────
DEFAULT_DB = BACKEND_DIR / "data" / "auth.db"


# ══════════════════════════════════════════════════════════════════════
# Demo data definitions
# ══════════════════════════════════════════════════════════════════════

DEMO_USERS = [
    {"name": "alice", "password": "alice-demo-pass", "email": "alice@example.com"},
    {"name": "bob", "password": "bob-demo-pass", "email": "bob@example.com"},
]

DEMO_GROUPS = {
    "analysts": {
        "description": "Read-only access to people",
        "members": ["alice"],
        "resources": [Resource(type=ResourceType.VERTEX, label="person")],
        "permissions": [Permission.READ],
    },
    "operators": {
        "description": "Maintain vertices and edges",
        "members": ["bob"],
        "resources": [
            Resource(type=ResourceType.VERTEX, label="*"),
            Resource(type=ResourceType.EDGE, label="*"),
        ],
        "permissions": [Permission.READ, Permission.WRITE],
    },
}


# ══════════════════════════════════════════════════════════════════════
# Seeding
# ══════════════════════════════════════════════════════════════════════

def seed_database(db_path: Path, graph: str) -> dict:
    engine = create_engine(f"sqlite:///{db_path}", future=True)
    session_factory = sessionmaker(bind=engine, expire_on_commit=False, future=True)

    with session_factory() as session:
        manager = AuthManager(session, graph_name=graph)

        with log_step(logger, 1, 4, "Creating schema"):
            manager.init_schema_if_needed()

        if manager.projects.query("name", "demo", limit=1):
            logger.warning(f"{db_path} is already seeded, nothing to do")
            return _resolved_roles(manager)

        with log_step(logger, 2, 4, "Creating users"):
            admin_name = settings.LOCAL_ADMIN_USERNAME or "admin"
            admin_password = settings.LOCAL_ADMIN_PASSWORD or "admin-demo-pass"
            users = [{"name": admin_name, "password": admin_password}] + DEMO_USERS
            for entry in users:
                if manager.find_user(entry["name"]) is not None:
                    logger.info(f"User '{entry['name']}' already exists, skipped")
                    continue
                manager.create_user(User(
                    name=entry["name"],
                    password=hash_password(entry["password"]),
                    email=entry.get("email"),
                    creator="seed",
                ))

        with log_step(logger, 3, 4, "Creating groups and grants"):
            for group_name, entry in DEMO_GROUPS.items():
                group_id = manager.create_group(
                    Group(name=group_name, description=entry["description"], creator="seed")
                )
                target_id = manager.create_target(Target(
                    name=f"{group_name}_target",
                    graph=graph,
                    url=settings.PROJECT_TARGET_URL,
                    resources=entry["resources"],
                    creator="seed",
                ))
                for permission in entry["permissions"]:
                    manager.create_access(Access(
                        group_id=group_id, target_id=target_id,
                        permission=permission, creator="seed",
                    ))
                for member in entry["members"]:
                    user = manager.find_user(member)
                    manager.create_belong(Belong(
                        user_id=user.id, group_id=group_id, creator="seed",
                    ))

        with log_step(logger, 4, 4, "Creating demo project"):
            project_id = manager.create_project(
                Project(name="demo", description="Demo project", creator="seed")
            )
            project = manager.get_project(project_id)
            admin = manager.find_user(admin_name)
            bob = manager.find_user("bob")
            manager.create_belong(Belong(user_id=admin.id, group_id=project.admin_group_id))
            manager.create_belong(Belong(user_id=bob.id, group_id=project.op_group_id))
            manager.update_project_add_graph(project_id, graph)

        return _resolved_roles(manager)


def _resolved_roles(manager: AuthManager) -> dict:
    return {
        user.name: manager.resolve_permission(user).to_dict()
        for user in manager.list_all_users()
    }


# ══════════════════════════════════════════════════════════════════════
# CLI
# ══════════════════════════════════════════════════════════════════════

def main():
    parser = argparse.ArgumentParser(
        description="Graphēon Auth Demo Seed Data: populate an auth database with an example tenant",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/seed_demo_data.py                    # Seed data/auth.db
  python scripts/seed_demo_data.py --db /tmp/auth.db  # Use specific DB file
  python scripts/seed_demo_data.py --graph tenant_b   # Seed another graph namespace
        """,
    )
    parser.add_argument(
        "--db", type=str, default=str(DEFAULT_DB),
        help=f"Path to SQLite database (default: {DEFAULT_DB})",
    )
    parser.add_argument(
        "--graph", type=str, default=settings.GRAPH_NAME,
        help=f"Graph namespace to seed (default: {settings.GRAPH_NAME})",
    )

    args = parser.parse_args()
    setup_logging(settings.LOG_LEVEL)
    logger.info(f"{settings.APP_NAME} v{settings.APP_VERSION}: seeding graph '{args.graph}'")
    db_path = Path(args.db)
    db_path.parent.mkdir(parents=True, exist_ok=True)

    try:
        roles = seed_database(db_path, args.graph)
    except Exception:
        audit.log_seed_data("failure", str(db_path))
        raise
    audit.log_seed_data("success", str(db_path))
    print(json.dumps(roles, indent=2))


if __name__ == "__main__":
    main()
