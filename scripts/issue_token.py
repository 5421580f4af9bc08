"""Utility script to issue a development access token for a recipient."""

from __future__ import annotations

import argparse
from datetime import timedelta

from quickqr_notify.infrastructure.security import create_access_token


def parse_args() -> argparse.Namespace:
    """Parse command line arguments for token issuance."""

    parser = argparse.ArgumentParser(
        description="Sign an access token accepted by the QuickQR notification service.",
    )
    parser.add_argument("recipient_id", help="Identity placed in the token's 'sub' claim")
    parser.add_argument(
        "--minutes",
        type=int,
        default=None,
        help="Token lifetime in minutes (default: ACCESS_TOKEN_EXPIRE_MINUTES)",
    )
    return parser.parse_args()


def main() -> None:
    """Print a token for the requested recipient."""

    args = parse_args()
    expires = timedelta(minutes=args.minutes) if args.minutes else None
    print(create_access_token(args.recipient_id, expires_delta=expires))


if __name__ == "__main__":
    main()
