"""
Mint (or revoke) a Redis session token for a local user, for trying the
messaging API and socket without the storefront login flow.

Run from project root:
    python -m scripts.create_session customer@example.com
    python -m scripts.create_session --revoke <token>
The token works as `Authorization: Bearer <token>` or `/api/ws?token=<token>`.
"""
import argparse
import logging
import sys

# Add project root so app imports work
sys.path.insert(0, ".")

from app.core.config import settings
from app.core.database import SessionLocal
from app.crud import user_crud
from app.session import init_redis, issue_session, remove_session

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("email", nargs="?", help="Email of an existing user")
    parser.add_argument("--revoke", metavar="TOKEN", help="Remove an existing session token")
    args = parser.parse_args()

    init_redis(
        host=settings.REDIS_HOST,
        port=settings.REDIS_PORT,
        db=settings.REDIS_DB,
        session_ttl=settings.SESSION_TTL,
    )

    if args.revoke:
        if remove_session(args.revoke):
            logger.info("Session revoked.")
        else:
            logger.warning("No session found for that token.")
        return

    if not args.email:
        parser.error("email is required unless --revoke is given")

    db = SessionLocal()
    try:
        user = user_crud.get_by_email(db, args.email)
        if not user:
            logger.error("User with email %r not found.", args.email)
            sys.exit(1)
        token = issue_session(user.id, user.email, is_admin=bool(user.is_admin))
    finally:
        db.close()

    logger.info("Session for %s (user_id=%s, admin=%s)", user.email, user.id, user.is_admin)
    print(token)


if __name__ == "__main__":
    main()
