"""
Create an account (e.g. the first admin). Run from project root:
  python -m clubapi.scripts.create_user EMAIL PASSWORD [role] [--name NAME]
Example:
  python -m clubapi.scripts.create_user admin@club.example your-secure-password admin
"""
import argparse
import logging
import sys

from pydantic import ValidationError

from clubapi.core.database import session_scope
from clubapi.schemas.auth import RegisterRequest, Role
from clubapi.services.accounts import AccountError, register_user
from clubapi.services.credential_store import StoreUnavailableError

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%SZ",
)
logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Create a club account without the registration endpoint.")
    parser.add_argument("email", help="Account e-mail")
    parser.add_argument("password", help="Password (8-128 chars)")
    parser.add_argument("role", nargs="?", default=Role.MEMBER.value, choices=[r.value for r in Role])
    parser.add_argument("--name", default="Administrator", help="Display name (2-100 chars)")
    args = parser.parse_args(argv)

    try:
        body = RegisterRequest(name=args.name, email=args.email, password=args.password)
    except ValidationError as e:
        for err in e.errors():
            print(f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}", file=sys.stderr)
        return 1

    try:
        with session_scope() as db:
            user = register_user(
                db,
                name=body.name,
                email=body.email,
                password=body.password,
                role=Role(args.role),
            )
            email, role = user.email, user.role
    except (AccountError, StoreUnavailableError) as e:
        print(e.message, file=sys.stderr)
        return 1
    logger.info("Created account %s with role %s", email, role)
    return 0


if __name__ == "__main__":
    sys.exit(main())
