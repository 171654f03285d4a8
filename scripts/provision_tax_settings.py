#!/usr/bin/env python3
"""
Provision the default presumed-profit tax settings for an account.

Usage:
    python scripts/provision_tax_settings.py --user-id 34
    python scripts/provision_tax_settings.py --user-id 34 --effective-date 2025-01-01
"""
import argparse
import sys
from datetime import date

from rentbooks.core.logger import init_logging
from rentbooks.db.session import session_scope
from rentbooks.services.tax_settings_service import TaxSettingsService


def provision(user_id: int, effective_date: date | None = None) -> int:
    with session_scope() as db:
        created = TaxSettingsService(db).initialize_defaults(user_id, effective_date)
        for setting in created:
            print(f"✅ {setting.tax_type}: {setting.rate}% effective {setting.effective_date}")
        if not created:
            print(f"ℹ️  User {user_id} already has open settings for every tax type")
        return len(created)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Provision default tax settings")
    parser.add_argument("--user-id", type=int, required=True, help="Account to provision")
    parser.add_argument("--effective-date", type=date.fromisoformat, default=None, help="YYYY-MM-DD")
    args = parser.parse_args(argv)

    init_logging()
    provision(args.user_id, args.effective_date)
    return 0


if __name__ == "__main__":
    sys.exit(main())
