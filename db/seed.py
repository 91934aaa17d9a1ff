from __future__ import annotations

import argparse
import hashlib
import json
import os
import secrets
import uuid
from datetime import UTC, datetime, timedelta

import sqlalchemy as sa

from db.settings import SETTINGS
from services.registry.app.tables import (
    access_key_to_account_map,
    access_keys,
    account_to_apps_map,
    accounts,
    apps,
    deployments,
)


DEFAULT_DEPLOYMENTS = ["Staging", "Production"]

SEEDED_TABLES = [
    "accounts",
    "access_keys",
    "access_key_to_account_map",
    "apps",
    "account_to_apps_map",
    "deployments",
    "packages",
    "blobs",
]


def _now() -> datetime:
    return datetime.now(tz=UTC)


def _det_uuid(*parts: str) -> str:
    h = hashlib.sha256("||".join(parts).encode("utf-8")).hexdigest()
    return str(uuid.UUID(h[:32]))


def seed(
    database_url: str,
    email: str,
    app_name: str,
    *,
    access_key_ttl_days: int = 60,
    deployment_names: list[str] | None = None,
) -> dict:
    email = email.lower()
    deployment_names = deployment_names or DEFAULT_DEPLOYMENTS
    now = _now()

    account_id = _det_uuid("account", email)
    app_id = _det_uuid("app", email, app_name)
    access_key_id = _det_uuid("access_key", email)
    access_key_name = secrets.token_urlsafe(32)
    expires = now + timedelta(days=access_key_ttl_days)

    deployment_rows = [
        {
            "id": _det_uuid("deployment", app_id, name),
            "name": name,
            "app_id": app_id,
            "key": secrets.token_urlsafe(32),
            "created_time": now,
        }
        for name in deployment_names
    ]

    engine = sa.create_engine(database_url, future=True)

    # Truncate existing rows for deterministic idempotence in dev.
    with engine.begin() as conn:
        conn.execute(sa.text(f"TRUNCATE TABLE {', '.join(SEEDED_TABLES)} CASCADE"))
        conn.execute(
            accounts.insert().values(
                id=account_id,
                name="Dev Account",
                email=email,
                github_id="dev",
                created_time=now,
            )
        )
        conn.execute(
            access_keys.insert().values(
                id=access_key_id,
                name=access_key_name,
                created_time=now,
                created_by=email,
                description="Seeded development key",
                expires=expires,
                friendly_name="dev-seed",
                is_session=False,
            )
        )
        conn.execute(
            access_key_to_account_map.insert().values(
                access_key_id=access_key_id, account_id=account_id, expires=expires
            )
        )
        conn.execute(
            apps.insert().values(
                id=app_id,
                name=app_name,
                created_time=now,
                collaborators={email: {"account_id": account_id, "permission": "Owner"}},
            )
        )
        conn.execute(account_to_apps_map.insert().values(account_id=account_id, app_id=app_id))
        conn.execute(deployments.insert(), deployment_rows)

        counts = {}
        for table in SEEDED_TABLES:
            counts[table] = conn.execute(sa.text(f"SELECT COUNT(1) FROM {table}")).scalar_one()

    result = {
        "account_id": account_id,
        "app_id": app_id,
        "access_key": access_key_name,
        "deployment_keys": {row["name"]: row["key"] for row in deployment_rows},
        "counts": counts,
    }
    print(json.dumps(result, indent=2, default=str))
    return result


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed a development account, app and deployments.")
    parser.add_argument("--database-url", default=os.getenv("DATABASE_URL") or SETTINGS.database_url)
    parser.add_argument("--email", default=SETTINGS.seed_account_email)
    parser.add_argument("--app-name", default="dev-app")
    parser.add_argument("--access-key-ttl-days", type=int, default=60)
    parser.add_argument(
        "--deployments",
        default=None,
        help="Comma-separated deployment names (default: Staging,Production).",
    )
    args = parser.parse_args()
    deployment_names = None
    if args.deployments:
        deployment_names = [x.strip() for x in str(args.deployments).split(",") if x.strip()]
    seed(
        args.database_url,
        args.email,
        args.app_name,
        access_key_ttl_days=args.access_key_ttl_days,
        deployment_names=deployment_names,
    )


if __name__ == "__main__":
    main()
