"""Delete unused completion links whose expiry has passed

Expiry is evaluated on every read, so this is housekeeping only.

Usage:
    python -m scripts.cleanup_expired_links
    python -m scripts.cleanup_expired_links --dry-run
"""
import argparse
import sys
import os

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from provider_portal.repositories.mongo_client import get_database, close_connection
from provider_portal.services.completion_link_service import CompletionLinkService
from provider_portal.domain.models import CompletionLink
from provider_portal.domain.enums import CompletionLinkState
from provider_portal.utils.time import utc_now


def main():
    parser = argparse.ArgumentParser(description="Purge expired completion links")
    parser.add_argument("--dry-run", action="store_true", help="Only count expired links")
    args = parser.parse_args()
    
    db = get_database()
    try:
        if args.dry_run:
            now = utc_now()
            expired = 0
            for doc in db["completion_links"].find({"used_at": None}):
                doc.pop("_id", None)
                if CompletionLink.model_validate(doc).state(now) == CompletionLinkState.EXPIRED:
                    expired += 1
            print(f"{expired} expired completion links would be purged")
            return
        
        purged = CompletionLinkService(db).purge_expired()
        print(f"Purged {purged} expired completion links")
    finally:
        close_connection()


if __name__ == "__main__":
    main()
