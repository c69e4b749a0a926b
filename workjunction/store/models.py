import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
    text,
)
from sqlalchemy.orm import declarative_base, relationship

from workjunction.lifecycle.state_machine import BookingStatus

Base = declarative_base()
metadata = Base.metadata

# Partial index predicate: only bookings that still hold their slot.
LIVE_SLOT_PREDICATE = "status NOT IN ('CANCELLED', 'DECLINED')"
LIVE_SLOT_INDEX = "uq_bookings_live_slot"


def _uuid() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ServiceAgent(Base):
    __tablename__ = 'service_agents'

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(Text, nullable=False)
    areas = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    workers = relationship('Worker', back_populates='agent')


class Worker(Base):
    __tablename__ = 'workers'

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(Text, nullable=False)
    phone = Column(Text)
    agent_id = Column(ForeignKey('service_agents.id', ondelete='SET NULL'))
    verification_status = Column(Text, nullable=False, server_default=text("'PENDING'"))
    availability_status = Column(Text, nullable=False, server_default=text("'available'"))
    is_suspended = Column(Boolean, nullable=False, default=False)
    suspended_until = Column(DateTime(timezone=True))
    timetable = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    agent = relationship('ServiceAgent', back_populates='workers')
    non_availability = relationship(
        'WorkerNonAvailability',
        back_populates='worker',
        order_by='WorkerNonAvailability.start_date',
        cascade='all, delete-orphan',
    )
    services = relationship('WorkerService', back_populates='worker')
    bookings = relationship('Booking', back_populates='worker')


class WorkerNonAvailability(Base):
    __tablename__ = 'worker_non_availability'

    id = Column(Integer, primary_key=True, autoincrement=True)
    worker_id = Column(ForeignKey('workers.id', ondelete='CASCADE'), nullable=False, index=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    reason = Column(Text, nullable=False, default='')

    worker = relationship('Worker', back_populates='non_availability')


class WorkerService(Base):
    __tablename__ = 'worker_services'

    id = Column(String(36), primary_key=True, default=_uuid)
    worker_id = Column(ForeignKey('workers.id', ondelete='CASCADE'), nullable=False, index=True)
    service_name = Column(Text, nullable=False)
    pricing_type = Column(Text, nullable=False, server_default=text("'fixed'"))
    price = Column(Float, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)

    worker = relationship('Worker', back_populates='services')
    bookings = relationship('Booking', back_populates='worker_service')


class Booking(Base):
    __tablename__ = 'bookings'
    __table_args__ = (
        Index(
            LIVE_SLOT_INDEX,
            'worker_id', 'booking_date', 'booking_time',
            unique=True,
            sqlite_where=text(LIVE_SLOT_PREDICATE),
            postgresql_where=text(LIVE_SLOT_PREDICATE),
        ),
        Index('ix_bookings_customer_status', 'customer_id', 'status'),
        Index('ix_bookings_worker_status', 'worker_id', 'status'),
    )

    id = Column(String(36), primary_key=True, default=_uuid)
    customer_id = Column(String(64), nullable=False)
    worker_id = Column(ForeignKey('workers.id'), nullable=False)
    worker_service_id = Column(ForeignKey('worker_services.id'), nullable=False)
    booking_date = Column(Date, nullable=False)
    booking_time = Column(String(5), nullable=False)
    status = Column(
        Enum(BookingStatus, native_enum=False, length=20, validate_strings=True),
        nullable=False,
        default=BookingStatus.PENDING,
    )
    price = Column(Float, nullable=False)

    # Customer contact details captured at booking time
    customer_name = Column(Text, nullable=False)
    customer_phone = Column(Text, nullable=False)
    customer_email = Column(Text)
    address = Column(Text, nullable=False)
    pincode = Column(Text, nullable=False)
    notes = Column(Text)

    # Payment
    payment_amount = Column(Float, nullable=False)
    payment_method = Column(Text)
    payment_status = Column(Text, nullable=False, server_default=text("'PENDING'"))
    transaction_id = Column(Text)
    paid_at = Column(DateTime(timezone=True))

    # Timeline
    requested_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    accepted_at = Column(DateTime(timezone=True))
    started_at = Column(DateTime(timezone=True))
    finished_at = Column(DateTime(timezone=True))
    completed_at = Column(DateTime(timezone=True))
    cancelled_at = Column(DateTime(timezone=True))
    declined_at = Column(DateTime(timezone=True))

    remarks = Column(Text)
    cancellation_reason = Column(Text)
    decline_reason = Column(Text)

    # Review, only after completion
    review_rating = Column(Integer)
    review_comment = Column(Text)
    reviewed_at = Column(DateTime(timezone=True))

    worker = relationship('Worker', back_populates='bookings')
    worker_service = relationship('WorkerService', back_populates='bookings')
