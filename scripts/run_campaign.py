# scripts/run_campaign.py
"""
Drive every remaining provisioning step for one campaign locally.

Usage:
    python scripts/run_campaign.py <campaign_id> <facebook|instagram|google>
"""
import argparse
import json
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from adlaunch.core import config
from adlaunch.core.logging_config import setup_logging
from adlaunch.db.session import init_db, test_db_connection
from adlaunch.worker import drive_campaign


def main() -> int:
    parser = argparse.ArgumentParser(description="Provision one campaign end to end")
    parser.add_argument("campaign_id")
    parser.add_argument("platform", choices=["facebook", "instagram", "google"])
    args = parser.parse_args()

    setup_logging("adlaunch-cli", config.LOG_LEVEL)

    print("=" * 60)
    print(f"Provisioning campaign {args.campaign_id} on {args.platform}")
    print("=" * 60)

    if not test_db_connection():
        print("[ERROR] Database connection failed! Check DATABASE_URL / DB_* in .env")
        return 1
    init_db()

    status = drive_campaign(args.campaign_id, args.platform)
    print(json.dumps(status, indent=2, default=str))
    return 0 if status["processing_status"] == "LAUNCHED" else 2


if __name__ == "__main__":
    sys.exit(main())
