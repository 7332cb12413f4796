"""Customer identity as seen by the order core."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class User:
    id: str
    full_name: str
    email: str = ""
    address_ids: frozenset[str] = field(default_factory=frozenset)

    def owns_address(self, address_id: str | None) -> bool:
        return address_id is not None and address_id in self.address_ids
