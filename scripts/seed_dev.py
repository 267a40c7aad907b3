from luckydraw.config import Settings
from luckydraw.db.store import LotteryStore
from luckydraw.errors import WarehouseExistsError
from luckydraw.workflows import add_prize, create_warehouse, list_warehouses

DEV_PRIZES = {
    "default": [
        ("Gift card 10 USD", 3),
        ("Sticker pack", 10),
        ("Thank you note", 20),
    ],
    "premium": [
        ("Mechanical keyboard", 1),
        ("Gift card 50 USD", 2),
    ],
}


def main() -> None:
    """Seed the development database with prize warehouses.

    The schema must already exist (``scripts/init_db.py``). Running the
    script twice restocks the same prizes instead of duplicating them.
    """
    settings = Settings.from_env()
    with LotteryStore.from_settings(settings) as store:
        for warehouse, prizes in DEV_PRIZES.items():
            try:
                create_warehouse(store, warehouse)
            except WarehouseExistsError:
                pass
            for text, stock in prizes:
                add_prize(store, warehouse, text, stock)

        for summary in list_warehouses(store):
            print(
                f"{summary.name}: {summary.prize_count} prizes, {summary.total_stock} units"
            )

    print("Development database seeded.")


if __name__ == "__main__":
    main()
