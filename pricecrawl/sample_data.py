"""Seed the price tables with a small fixed data set."""

from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from pricecrawl.logging_config import get_logger
from pricecrawl.storage.repo import PriceObservation, PriceWriter

LOGGER = get_logger(__name__)

_ACTIONS = (
    "Display Reparatur",
    "Akku Reparatur",
    "Rückkamera Reparatur",
    "Frontkamera Reparatur",
    "Ladebuchse Reparatur",
)

# manufacturer -> device -> prices in _ACTIONS order
SAMPLE_PRICES: dict[str, dict[str, tuple[int, ...]]] = {
    "Apple": {
        "iPhone 15 Pro Max": (429, 109, 189, 129, 99),
        "iPhone 15 Pro": (379, 109, 179, 129, 99),
        "iPhone 14 Pro Max": (399, 99, 169, 119, 89),
    },
    "Samsung": {
        "Galaxy S23 Ultra": (319, 89, 159, 99, 79),
        "Galaxy S23+": (279, 89, 149, 99, 79),
        "Galaxy Z Fold 5": (499, 149, 179, 129, 99),
    },
}


def sample_observations() -> list[PriceObservation]:
    observations: list[PriceObservation] = []
    for manufacturer, devices in SAMPLE_PRICES.items():
        for device, prices in devices.items():
            for action, price in zip(_ACTIONS, prices):
                observations.append(PriceObservation(manufacturer, device, action, price))
    return observations


def populate_sample_data(session: Session, *, logger: logging.Logger | None = None) -> int:
    """Write the sample hierarchy; returns the number of price rows added."""

    log = logger or LOGGER
    writer = PriceWriter(session, logger=log)
    written = 0
    for observation in sample_observations():
        if writer.record(observation) is not None:
            written += 1
    log.info("Sample data population completed | prices=%d", written)
    return written


__all__ = ["SAMPLE_PRICES", "populate_sample_data", "sample_observations"]
