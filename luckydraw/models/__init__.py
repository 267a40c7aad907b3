from .base import Base

# import models so Alembic/autoloaders can discover mappers
from .lottery import LotteryActivity, LotteryStatus, DistributionMode  # noqa: F401
from .participant import Participant  # noqa: F401
from .prize import PrizeWarehouse, PrizeItem  # noqa: F401
from .winner import WinnerRecord, WinnerStatus  # noqa: F401

__all__ = [
    "Base",
    "LotteryActivity",
    "LotteryStatus",
    "DistributionMode",
    "Participant",
    "PrizeWarehouse",
    "PrizeItem",
    "WinnerRecord",
    "WinnerStatus",
]
