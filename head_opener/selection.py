"""Choice of the output each participant commits."""

from __future__ import annotations

from typing import Iterable

from .errors import NoFundsError
from .models import SpendableOutput


def select_funding_output(outputs: Iterable[SpendableOutput]) -> SpendableOutput:
    """Return the output holding the most lovelace.

    Ties keep the first maximal output in iteration order.
    """

    best: SpendableOutput | None = None
    for output in outputs:
        if best is None or output.lovelace > best.lovelace:
            best = output
    if best is None:
        raise NoFundsError("no spendable outputs to select from")
    return best


__all__ = ["select_funding_output"]
