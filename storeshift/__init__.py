"""
Storeshift

Migrate JSON documents between storage providers through a single
document-store interface.

Supports:
- Redis, SQL (SQLAlchemy) and in-memory backends behind one adapter contract
- Named provider registry with per-operation sessions
- Composable transformation chains tuned to each provider pair
- Previews, time estimates and validated migration plans
- Backups, restores, rollbacks and consistency comparison
- JSON results and Markdown reports
"""

__version__ = "0.1.0"
