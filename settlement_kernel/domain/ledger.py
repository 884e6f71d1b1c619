"""
Ledger -- immutable payment-details value record.

Responsibility:
    Models the per-project payment ledger (client, owner, partners) as a
    frozen value.  Every setter returns a new ``PaymentDetails``; the stored
    JSON shape is produced by ``to_dict`` and parsed by ``from_dict``.

Architecture position:
    Kernel > Domain -- pure value objects, zero I/O.  The Project model
    exposes its JSON column only through this type.

Stored JSON shape:
    {"client":   {"status": "unpaid", "amountPaid": "0.00"},
     "owner":    {"status": "unpaid", "amountReceived": "0.00"},
     "partners": {"<partner uuid>": {"status": "unpaid",
                                     "amountReceived": "0.00"}}}

Invariants enforced:
    - No in-place mutation; ``partners`` is a read-only mapping.
    - Amounts are stored as decimal strings, never floats.
    - ``payment_status_for`` is the single threshold rule for every party.

Failure modes:
    - ValueError from ``from_dict`` when the stored JSON is malformed.  The
      model layer converts it into DataIntegrityError with the project id.
"""

from dataclasses import dataclass, field, replace
from decimal import Decimal, InvalidOperation
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping
from uuid import UUID

from settlement_kernel.db.types import ZERO


class PaymentStatus(str, Enum):
    """Payment progress of one party against its expected amount."""

    UNPAID = "unpaid"
    PARTIAL = "partial"
    PAID = "paid"


def payment_status_for(received: Decimal, expected: Decimal) -> PaymentStatus:
    """
    Threshold rule shared by client, owner and partners.

    ``received <= 0`` is unpaid, ``received >= expected`` is paid, anything
    in between is partial.
    """
    if received <= ZERO:
        return PaymentStatus.UNPAID
    if received >= expected:
        return PaymentStatus.PAID
    return PaymentStatus.PARTIAL


_INITIAL_AMOUNT = Decimal("0.00")


@dataclass(frozen=True)
class ClientLedger:
    status: PaymentStatus = PaymentStatus.UNPAID
    amount_paid: Decimal = _INITIAL_AMOUNT


@dataclass(frozen=True)
class StakeholderLedger:
    status: PaymentStatus = PaymentStatus.UNPAID
    amount_received: Decimal = _INITIAL_AMOUNT


def _parse_amount(raw: Any, path: str) -> Decimal:
    if isinstance(raw, float) or isinstance(raw, bool):
        raise ValueError(f"{path} must be a decimal string")
    try:
        value = Decimal(str(raw))
    except InvalidOperation:
        raise ValueError(f"{path} is not a decimal: {raw!r}") from None
    if not value.is_finite():
        raise ValueError(f"{path} is not finite: {raw!r}")
    return value


def _parse_status(raw: Any, path: str) -> PaymentStatus:
    try:
        return PaymentStatus(raw)
    except ValueError:
        raise ValueError(f"{path} has unknown status {raw!r}") from None


def _section(data: Mapping, key: str) -> Mapping:
    section = data.get(key)
    if section is None:
        return {}
    if not isinstance(section, Mapping):
        raise ValueError(f"{key} must be an object")
    return section


def _stakeholder_from_dict(section: Mapping, path: str) -> StakeholderLedger:
    return StakeholderLedger(
        status=_parse_status(section.get("status", "unpaid"), f"{path}.status"),
        amount_received=_parse_amount(
            section.get("amountReceived", "0.00"), f"{path}.amountReceived"
        ),
    )


@dataclass(frozen=True)
class PaymentDetails:
    """
    Immutable project payment ledger.

    Contract:
        ``with_client``, ``with_owner``, ``with_partner`` and
        ``without_partner`` never modify ``self``; they return a new record.
    """

    client: ClientLedger = field(default_factory=ClientLedger)
    owner: StakeholderLedger = field(default_factory=StakeholderLedger)
    partners: Mapping[UUID, StakeholderLedger] = field(
        default_factory=lambda: MappingProxyType({})
    )

    def __post_init__(self) -> None:
        if not isinstance(self.partners, MappingProxyType):
            object.__setattr__(self, "partners", MappingProxyType(dict(self.partners)))

    @classmethod
    def initial(cls) -> "PaymentDetails":
        """All parties unpaid with zero received."""
        return cls()

    def partner(self, partner_id: UUID) -> StakeholderLedger:
        """Mirror entry for a partner; unpaid/0 when absent."""
        return self.partners.get(partner_id, StakeholderLedger())

    def with_client(self, amount_paid: Decimal, status: PaymentStatus) -> "PaymentDetails":
        return replace(self, client=ClientLedger(status=status, amount_paid=amount_paid))

    def with_owner(self, amount_received: Decimal, status: PaymentStatus) -> "PaymentDetails":
        return replace(
            self, owner=StakeholderLedger(status=status, amount_received=amount_received)
        )

    def with_partner(
        self,
        partner_id: UUID,
        amount_received: Decimal,
        status: PaymentStatus,
    ) -> "PaymentDetails":
        partners = dict(self.partners)
        partners[partner_id] = StakeholderLedger(
            status=status, amount_received=amount_received
        )
        return replace(self, partners=MappingProxyType(partners))

    def without_partner(self, partner_id: UUID) -> "PaymentDetails":
        partners = {k: v for k, v in self.partners.items() if k != partner_id}
        return replace(self, partners=MappingProxyType(partners))

    def to_dict(self) -> dict[str, Any]:
        """Stored JSON form (fresh dict on every call)."""
        return {
            "client": {
                "status": self.client.status.value,
                "amountPaid": str(self.client.amount_paid),
            },
            "owner": {
                "status": self.owner.status.value,
                "amountReceived": str(self.owner.amount_received),
            },
            "partners": {
                str(partner_id): {
                    "status": entry.status.value,
                    "amountReceived": str(entry.amount_received),
                }
                for partner_id, entry in self.partners.items()
            },
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "PaymentDetails":
        """
        Parse the stored JSON form.

        ``None`` yields the initial ledger.  Missing sections default to
        unpaid/0.

        Raises:
            ValueError: If the structure, an amount or a status is malformed.
        """
        if data is None:
            return cls.initial()
        if not isinstance(data, Mapping):
            raise ValueError("payment details must be an object")

        client_section = _section(data, "client")
        client = ClientLedger(
            status=_parse_status(client_section.get("status", "unpaid"), "client.status"),
            amount_paid=_parse_amount(
                client_section.get("amountPaid", "0.00"), "client.amountPaid"
            ),
        )
        owner = _stakeholder_from_dict(_section(data, "owner"), "owner")

        partners: dict[UUID, StakeholderLedger] = {}
        for raw_id, section in _section(data, "partners").items():
            try:
                partner_id = UUID(str(raw_id))
            except ValueError:
                raise ValueError(f"partners key is not a UUID: {raw_id!r}") from None
            if not isinstance(section, Mapping):
                raise ValueError(f"partners.{raw_id} must be an object")
            partners[partner_id] = _stakeholder_from_dict(section, f"partners.{raw_id}")

        return cls(client=client, owner=owner, partners=MappingProxyType(partners))
