"""
Reservation ledger: capacity accounting for visit slots and promo code
redemption.

Each operation runs its read-check-write sequence inside one transaction on
the session it was given. On databases with row locks the slot/code row is
read with SELECT ... FOR UPDATE; elsewhere (SQLite) a per-key lock from a
shared KeyedLocks registry is held until the transaction commits.

Business-rule conflicts come back as tagged results, never as exceptions.
Store errors roll back and propagate.
"""
import enum
import logging
import secrets
from contextlib import nullcontext
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from models.booking import Booking
from models.customer import Customer
from models.promo_code import PromoCode
from models.slot import Slot
from services.locks import KeyedLocks
from utils.validation import MAX_DB_INT

logger = logging.getLogger(__name__)

ROW_LOCKING_DIALECTS = {"postgresql", "mysql", "mariadb", "oracle", "mssql"}
GIFT_CODE_PREFIX = "GIFT"


class LedgerError(Exception):
    pass


class InvalidLedgerRequest(LedgerError, ValueError):
    """Input rejected before the store is touched."""


class GiftCodeUnavailable(LedgerError):
    pass


class ReservationStatus(str, enum.Enum):
    RESERVED = "reserved"
    CAPACITY_EXCEEDED = "capacity_exceeded"
    SLOT_NOT_FOUND = "slot_not_found"
    SLOT_CLOSED = "slot_closed"


class RedemptionStatus(str, enum.Enum):
    APPLIED = "applied"
    NOT_FOUND = "not_found"
    ALREADY_USED = "already_used"


@dataclass(frozen=True)
class ReservationResult:
    status: ReservationStatus
    booking: Optional[Booking] = None
    available: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.status is ReservationStatus.RESERVED


@dataclass(frozen=True)
class RedemptionResult:
    status: RedemptionStatus
    code: str
    base_price_cents: int
    final_price_cents: int
    discount_percent: int = 0
    one_time: bool = False

    @property
    def applied(self) -> bool:
        return self.status is RedemptionStatus.APPLIED

    @property
    def discount_cents(self) -> int:
        return self.base_price_cents - self.final_price_cents


def normalize_code(code) -> str:
    if not isinstance(code, str):
        return ""
    return code.strip().upper()


def apply_discount(base_price_cents: int, discount_percent: int) -> int:
    # Half-up rounding to whole cents
    return (base_price_cents * (100 - discount_percent) + 50) // 100


def _is_count(value) -> bool:
    # must also fit an INTEGER column
    return isinstance(value, int) and not isinstance(value, bool) and abs(value) <= MAX_DB_INT


class ReservationLedger:
    def __init__(
        self,
        session,
        locks: Optional[KeyedLocks] = None,
        notifier=None,
        clock: Callable[[], datetime] = datetime.utcnow,
        gift_code_attempts: int = 5,
        row_locking: Optional[bool] = None,
    ):
        self._session = session
        self._notifier = notifier
        self._clock = clock
        self._gift_code_attempts = max(1, gift_code_attempts)

        if row_locking is None:
            row_locking = session.get_bind().dialect.name in ROW_LOCKING_DIALECTS
        self._row_locking = row_locking

        if locks is None and not row_locking:
            logger.warning("No shared lock registry given; locking only within this ledger")
            locks = KeyedLocks()
        self._locks = locks

    # ---------- slots ----------

    def reserve_slot(self, slot_id: int, quantity: int, customer_name: str = "", customer_email: str = "") -> ReservationResult:
        if not _is_count(quantity) or quantity < 1:
            raise InvalidLedgerRequest("quantity must be a whole number of at least 1")
        if not _is_count(slot_id):
            raise InvalidLedgerRequest("slot id must be an integer")

        with self._exclusive("slot", slot_id):
            try:
                slot = self._session.execute(
                    select(Slot)
                    .where(Slot.id == slot_id)
                    .with_for_update()
                    .execution_options(populate_existing=True)
                ).scalar_one_or_none()

                if slot is None or not slot.is_active:
                    self._session.rollback()
                    return ReservationResult(ReservationStatus.SLOT_NOT_FOUND)

                available = slot.available
                if slot.start_time <= self._clock():
                    self._session.rollback()
                    return ReservationResult(ReservationStatus.SLOT_CLOSED, available=available)

                if slot.booked + quantity > slot.capacity:
                    self._session.rollback()
                    logger.info("Slot #%s full: %d requested, %d left", slot_id, quantity, available)
                    return ReservationResult(ReservationStatus.CAPACITY_EXCEEDED, available=available)

                slot.booked = slot.booked + quantity
                booking = Booking(
                    slot_id=slot.id,
                    customer_name=customer_name,
                    customer_email=customer_email,
                    quantity=quantity,
                    amount_cents=slot.price_cents * quantity,
                    status="pending",
                    payment_token=secrets.token_urlsafe(24),
                )
                self._session.add(booking)
                remaining = slot.capacity - slot.booked
                self._session.commit()
            except SQLAlchemyError:
                self._session.rollback()
                raise

        logger.info("Reserved %d on slot #%s (booking #%s, %d left)", quantity, slot_id, booking.id, remaining)
        self._notify("slot_reserved", booking)
        return ReservationResult(ReservationStatus.RESERVED, booking=booking, available=remaining)

    # ---------- promo codes ----------

    def find_promo_code(self, code) -> Optional[PromoCode]:
        """Read-only lookup for the advisory check; never mutates."""
        normalized = normalize_code(code)
        if not normalized:
            return None
        return self._session.execute(
            select(PromoCode).where(PromoCode.code == normalized)
        ).scalar_one_or_none()

    def redeem_promo_code(
        self,
        code,
        base_price_cents: int,
        persist: Optional[Callable[[RedemptionResult], None]] = None,
    ) -> RedemptionResult:
        """
        Apply a promo code to a price.

        `persist` runs inside the same transaction with the outcome, so the
        dependent row (e.g. the adopting customer) and the code's used flag
        commit or roll back together. It is called whether or not the
        discount applied.
        """
        normalized = normalize_code(code)
        if not normalized:
            raise InvalidLedgerRequest("promo code is required")
        if not _is_count(base_price_cents) or base_price_cents <= 0:
            raise InvalidLedgerRequest("base price must be a positive amount in cents")

        with self._exclusive("promo", normalized):
            try:
                promo = self._session.execute(
                    select(PromoCode)
                    .where(PromoCode.code == normalized)
                    .with_for_update()
                    .execution_options(populate_existing=True)
                ).scalar_one_or_none()

                result = self._redemption_for(promo, normalized, base_price_cents)

                if result.applied and result.one_time:
                    claimed = self._session.execute(
                        update(PromoCode)
                        .where(PromoCode.id == promo.id, PromoCode.used.is_(False))
                        .values(used=True, used_at=self._clock())
                    ).rowcount
                    if claimed != 1:
                        result = RedemptionResult(
                            RedemptionStatus.ALREADY_USED, normalized, base_price_cents, base_price_cents
                        )

                if persist is not None:
                    persist(result)
                self._session.commit()
            except Exception:
                self._session.rollback()
                raise

        if result.applied:
            logger.info(
                "Promo %s applied: %d -> %d cents", normalized, base_price_cents, result.final_price_cents
            )
            self._notify("promo_redeemed", result)
        else:
            logger.info("Promo %s not applied (%s)", normalized, result.status.value)
        return result

    def _redemption_for(self, promo, code, base_price_cents) -> RedemptionResult:
        if promo is None:
            return RedemptionResult(RedemptionStatus.NOT_FOUND, code, base_price_cents, base_price_cents)
        if promo.consumed:
            return RedemptionResult(RedemptionStatus.ALREADY_USED, code, base_price_cents, base_price_cents)
        return RedemptionResult(
            RedemptionStatus.APPLIED,
            code,
            base_price_cents,
            apply_discount(base_price_cents, promo.discount_percent),
            discount_percent=promo.discount_percent,
            one_time=promo.one_time,
        )

    def generate_gift_code(self, customer_id: int) -> PromoCode:
        """
        Issue a one-time 100% code for a gift adoption and store it on the
        customer. The random part comes from a CSPRNG; a collision on the
        unique code column is retried with a fresh value.

        Idempotent per customer: if a code was already issued, that code is
        returned and nothing new is created.
        """
        if not _is_count(customer_id):
            raise InvalidLedgerRequest("customer id must be an integer")

        with self._exclusive("gift", customer_id):
            for attempt in range(1, self._gift_code_attempts + 1):
                code = f"{GIFT_CODE_PREFIX}-{customer_id}-{secrets.token_hex(3).upper()}"
                try:
                    customer = self._session.execute(
                        select(Customer)
                        .where(Customer.id == customer_id)
                        .with_for_update()
                        .execution_options(populate_existing=True)
                    ).scalar_one_or_none()
                    if customer is None:
                        self._session.rollback()
                        raise InvalidLedgerRequest(f"customer {customer_id} not found")

                    if customer.gift_code:
                        existing = self._session.execute(
                            select(PromoCode).where(PromoCode.code == customer.gift_code)
                        ).scalar_one_or_none()
                        if existing is not None:
                            self._session.rollback()
                            return existing

                    promo = PromoCode(
                        code=code,
                        discount_percent=100,
                        one_time=True,
                        used=False,
                        is_gift=True,
                        issued_for_customer_id=customer_id,
                    )
                    self._session.add(promo)
                    customer.gift_code = code
                    self._session.commit()
                except IntegrityError:
                    self._session.rollback()
                    logger.warning("Gift code collision on %s (attempt %d)", code, attempt)
                    continue
                except SQLAlchemyError:
                    self._session.rollback()
                    raise

                break
            else:
                raise GiftCodeUnavailable(f"could not issue a unique gift code for customer {customer_id}")

        self._notify("gift_code_issued", customer_id, code)
        return promo

    # ---------- internals ----------

    def _exclusive(self, kind: str, key):
        if self._row_locking:
            return nullcontext()
        return self._locks.hold((kind, key))

    def _notify(self, event: str, *args):
        if self._notifier is None:
            return
        try:
            getattr(self._notifier, event)(*args)
        except Exception:
            logger.exception("Notifier failed on %s", event)
