"""
Shared module for configuration and infrastructure used by the REST API.

STRUCTURE:
- inventory_shared.config: settings.py (pydantic-settings), logging.py, constants.py
- inventory_shared.infrastructure: db.py (SQLAlchemy sessions, safe_commit),
  correlation.py (X-Request-ID), redis/ (pool, keys and TTLs)
- inventory_shared.security: auth.py (JWT verification, current_user_context)
- inventory_shared.utils: exceptions.py (HTTP exceptions with auto-logging)

IMPORT EXAMPLES:
    from inventory_shared.infrastructure.db import get_db, safe_commit
    from inventory_shared.config.settings import settings
    from inventory_shared.utils.exceptions import NotFoundError, BranchAccessError
"""
