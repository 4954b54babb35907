"""
Shared module for common utilities used by the REST API.

STRUCTURE:
- shared.security: Authentication and authorization
  - auth.py: JWT signing/verification, current_user_context, require_roles

- shared.infrastructure: Database, messaging and notifications
  - db.py: SQLAlchemy sessions, safe_commit()
  - correlation.py: Request correlation IDs for logging
  - events/: Redis pub/sub event dispatcher
  - email.py: SMTP email sender

- shared.config: Configuration
  - settings.py: Environment config (Pydantic)
  - logging.py: Structured logging
  - constants.py: Roles, statuses, approval types, audit enums

- shared.utils: Utilities
  - exceptions.py: HTTP exceptions with error codes and auto-logging
  - validators.py: Input validation helpers
  - schemas.py: Shared Pydantic schemas

IMPORT EXAMPLES:
    from shared.security.auth import verify_jwt, current_user_context
    from shared.infrastructure.db import get_db, safe_commit
    from shared.config.settings import settings
    from shared.config.constants import OrderStatus, ApprovalType
    from shared.utils.exceptions import NotFoundError, ConflictError
"""
