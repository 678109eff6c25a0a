"""Mint a bearer token for local development and manual API testing.

Usage:
    python -m scripts.issue_dev_token <owner_id> [--admin] [--minutes N]
Tokens are normally issued by the identity provider; this signs one with
SECRET_KEY so the API can be exercised without it.
"""

import argparse
import sys
from datetime import timedelta

from s3manager.core.config import get_settings
from s3manager.infrastructure.security.jwt import mint_token


def main() -> None:
    """Print a signed token for the given owner id."""
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("owner_id", help="Token subject (owner id)")
    parser.add_argument("--admin", action="store_true", help="Grant the admin role")
    parser.add_argument("--minutes", type=int, default=None, help="Token lifetime")
    args = parser.parse_args()

    if not args.owner_id.strip():
        print("owner_id must not be empty", file=sys.stderr)
        sys.exit(1)
    get_settings()
    expires = timedelta(minutes=args.minutes) if args.minutes else None
    token = mint_token(args.owner_id, is_admin=args.admin, expires_delta=expires)
    print(token)


if __name__ == "__main__":
    main()
