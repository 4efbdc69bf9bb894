# cfd_journal/domain/ledger.py
"""Append-only ledger of fills for one position."""

from typing import Iterable, Iterator, List, Optional

from cfd_journal.domain.models import Fill, Side
from cfd_journal.errors import ValidationError


def validate_fill(fill: Fill) -> None:
    if not isinstance(fill.side, Side):
        raise ValidationError(f"Unknown fill side: {fill.side!r}")
    if fill.quantity is None or fill.quantity <= 0:
        raise ValidationError(f"Fill quantity must be positive, got {fill.quantity}")
    if fill.price is None or fill.price <= 0:
        raise ValidationError(f"Fill price must be positive, got {fill.price}")
    for name in ("open_fee", "close_fee", "night_fee"):
        if getattr(fill, name) < 0:
            raise ValidationError(f"Fill {name} cannot be negative")


class FillLedger:
    """
    Ordered fills of one operation group.

    Iteration yields fills by timestamp ascending, ties broken by insertion
    order. Every iteration starts over, so the ledger can be walked as many
    times as needed.
    """

    def __init__(self, position_id: Optional[str] = None, fills: Iterable[Fill] = ()):
        self.position_id = position_id
        self._fills: List[Fill] = []
        for fill in sorted(fills, key=lambda f: f.sequence):
            self._fills.append(fill)

    def append(self, fill: Fill) -> Fill:
        """Validate and add a fill, stamping its insertion sequence."""
        validate_fill(fill)
        fill.sequence = self.next_sequence()
        self._fills.append(fill)
        return fill

    def next_sequence(self) -> int:
        return max((f.sequence for f in self._fills), default=0) + 1

    def __iter__(self) -> Iterator[Fill]:
        ordered = sorted(
            enumerate(self._fills),
            key=lambda item: (item[1].timestamp, item[1].sequence, item[0]),
        )
        return (fill for _, fill in ordered)

    def __len__(self) -> int:
        return len(self._fills)

    def list(self) -> List[Fill]:
        return list(self)
