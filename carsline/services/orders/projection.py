"""Projection of a vehicle's next service after a delivery."""

import calendar
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from carsline.core.config import get_settings


@dataclass(frozen=True)
class NextService:
    """Projected odometer reading and date of the next service."""

    mileage: Optional[int]
    date: Optional[datetime]


def add_months(moment: datetime, months: int) -> datetime:
    """
    Add calendar months, clamping the day to the end of the target month.

    >>> add_months(datetime(2024, 8, 31), 6)
    datetime.datetime(2025, 2, 28, 0, 0)
    """
    month_index = moment.month - 1 + months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


class NextServiceProjection(ABC):
    """Policy deciding when a vehicle is due for its next service."""

    @abstractmethod
    def project(self, service_type_id: int, mileage: int, service_date: datetime) -> NextService:
        """Project the next service from the one just delivered."""


class FixedIntervalProjection(NextServiceProjection):
    """Same mileage and calendar interval for every service type."""

    def __init__(self, mileage_interval: int = 10000, months: int = 6):
        self.mileage_interval = mileage_interval
        self.months = months

    @classmethod
    def from_settings(cls) -> "FixedIntervalProjection":
        settings = get_settings()
        return cls(
            mileage_interval=settings.next_service_mileage_interval,
            months=settings.next_service_months,
        )

    def project(self, service_type_id: int, mileage: int, service_date: datetime) -> NextService:
        return NextService(
            mileage=mileage + self.mileage_interval,
            date=add_months(service_date, self.months),
        )
