#!/usr/bin/env python3
"""
Re-render the SAFE for stored investments.

Useful when a template is updated or a document needs to be produced again
without going through the form.

Usage:
    python render_safe.py --investment-id INVESTMENT_ID [--output-dir DIR] [--dry-run]
    python render_safe.py --auth-id AUTH_ID [--output-dir DIR] [--dry-run]

Examples:
    # Render one investment into ./out
    python render_safe.py --investment-id <investment_id> --output-dir out

    # Render every investment created by a user
    python render_safe.py --auth-id <auth_id>

    # Dry run (map fields and print them, don't render)
    python render_safe.py --investment-id <investment_id> --dry-run
"""

import sys
import os
import argparse

# Add parent directory to path to import services
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from services import investment_service, profile_service
from services.errors import SafeError
from services.field_mapper import map_to_template_fields
from services.models import SafeFormValues
from services.template_service import render_to_file


def get_investments(investment_id=None, auth_id=None):
    """Investments to render, either one by id or all of a user's"""
    if investment_id:
        return [investment_service.fetch_investment_details(investment_id)]
    user = profile_service.get_user_by_auth_id(auth_id)
    return investment_service.list_investments(user)


def main():
    parser = argparse.ArgumentParser(description='Re-render SAFE documents for stored investments')
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument('--investment-id', help='Render a single investment')
    target.add_argument('--auth-id', help='Render all investments created by this user')
    parser.add_argument('--output-dir', default='.', help='Directory for the .docx files')
    parser.add_argument('--dry-run', action='store_true', help='Print the mapped fields without rendering')
    args = parser.parse_args()

    investments = get_investments(args.investment_id, args.auth_id)
    print(f"Found {len(investments)} investment(s)")

    success_count = 0
    error_count = 0
    for details in investments:
        investment = details.investment
        print(f"\nInvestment {investment.id} ({investment_service.format_investment_type(investment.investment_type)})")
        try:
            values = SafeFormValues.from_investment(details)
            fields = map_to_template_fields(values)
            if args.dry_run:
                for key, value in fields.items():
                    print(f"  {key}: {value}")
                continue

            # One sub-directory per investment so same-type SAFEs don't overwrite each other
            output_dir = os.path.join(args.output_dir, str(investment.id))
            os.makedirs(output_dir, exist_ok=True)
            path = render_to_file(values.investment_type, fields, output_dir)
            print(f"  ✓ Written {path}")
            success_count += 1
        except SafeError as e:
            print(f"  ✗ ERROR: {e.message}")
            error_count += 1

    print(f"\n{'='*60}")
    print("Summary:")
    print(f"  Total processed: {len(investments)}")
    print(f"  Successful: {success_count}")
    print(f"  Errors: {error_count}")
    print(f"{'='*60}")

    return 1 if error_count else 0


if __name__ == '__main__':
    sys.exit(main())
