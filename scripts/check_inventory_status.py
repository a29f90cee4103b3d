"""
Check inventory status - items per lifecycle status and location, plus sales
for the current financial year.
"""

import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from config.settings import load_settings
from repositories.factory import build_store
from services import summary_service


def check_inventory_status():
    """Print the inventory and sales summaries for the configured store."""

    settings = load_settings()
    store = build_store(settings)

    inventory = summary_service.inventory_summary(store)
    sales = summary_service.sales_summary(
        store, tz=settings.tz, start_month=settings.financial_year_start_month
    )

    print("=" * 50)
    print("INVENTORY STATUS")
    print("=" * 50)
    print(f"Total items:               {inventory.total_items}")
    for status, count in inventory.status_counts.items():
        print(f"  {status:<24}{count}")

    print("\nOn-hand items by location:")
    print("-" * 50)
    if not inventory.location_counts:
        print("  (none)")
    for location, count in inventory.location_counts.items():
        print(f"  {location:<24}{count}")

    print("\n" + "=" * 50)
    print(f"SALES (FY{sales.financial_year})")
    print("=" * 50)
    print(f"All time sold:             {sales.all_time_sold}")
    print(f"This financial year:       {sales.financial_year_sold}")
    print(f"Previous financial year:   {sales.previous_financial_year_sold}")
    print(f"Year-on-year growth:       {sales.yoy_growth_percent:.1f}%")
    print(f"Cost of goods (FY):        {sales.financial_year_cost_of_goods / 100:.2f}")
    print(f"Average cost (FY):         {sales.financial_year_average_cost / 100:.2f}")
    print(f"Cost of goods growth:      {sales.cost_yoy_growth_percent:.1f}%")
    print(f"{sales.month_name} {sales.month_year}:".ljust(27) + f"{sales.current_month_sold}")
    print("=" * 50)

    aging = summary_service.aging_stock(store, 30)
    print(f"\nSTORED over 30 days:       {aging.total_items} (avg {aging.average_age_days:.1f} days)")
    for location, count in aging.location_counts.items():
        print(f"  {location:<24}{count}")


if __name__ == "__main__":
    check_inventory_status()
