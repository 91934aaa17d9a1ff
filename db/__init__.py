"""
Database utilities, migrations, and seeding.

Runtime DB access lives in `services.registry`. This package is for repo-level DB operations:
- Alembic migrations config
- Development seed (account, access key, app, default deployments)
"""
