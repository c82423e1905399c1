"""Persistence for club applications: filtered listing, lookup and guarded status writes."""

from __future__ import annotations

import math
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Any, Callable, Mapping

from flask import current_app
from sqlalchemy import case, func, or_, select, update
from sqlalchemy.exc import DBAPIError, IntegrityError

from clubreview.errors import ConflictingReview, NotFoundError, TransientStoreError, ValidationError
from clubreview.extensions import db
from clubreview.models import AdminUser, ApplicationStatus, ClubApplication, utcnow
from clubreview.services import audit

SEARCH_COLUMNS = {
    'name': ClubApplication.name,
    'email': ClubApplication.contact_email,
    'description': ClubApplication.description,
}
SORT_COLUMNS = {
    'name': ClubApplication.name,
    'created_at': ClubApplication.created_at,
    'status': ClubApplication.status,
    'location': ClubApplication.location,
}
STATUS_FILTERS = {'pending', 'approved', 'rejected', 'all'}
LIKE_ESCAPE = '\\'


def contains_pattern(text: str) -> str:
    """LIKE pattern matching ``text`` literally anywhere in the column."""
    escaped = text.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')
    return f"%{escaped}%"


def parse_application_id(value: Any) -> str:
    """Return the canonical form of an application id or raise ValidationError."""
    try:
        return str(uuid.UUID(str(value)))
    except (TypeError, ValueError, AttributeError):
        raise ValidationError(f"Invalid application id: {value!r}")


def parse_date_bound(value: str, field_name: str, end_of_range: bool) -> datetime:
    try:
        if len(value) == 10:
            day = date.fromisoformat(value)
            if end_of_range:
                # A bare date includes the whole day
                return datetime.combine(day + timedelta(days=1), time.min)
            return datetime.combine(day, time.min)
        return datetime.fromisoformat(value)
    except ValueError:
        raise ValidationError(f"{field_name} must be an ISO date (YYYY-MM-DD)")


def _parse_int(value: Any, field_name: str, default: int) -> int:
    if value in (None, ''):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} must be an integer")


@dataclass
class ApplicationFilters:
    status: str = 'pending'
    search: str | None = None
    search_fields: list[str] = field(default_factory=lambda: list(SEARCH_COLUMNS))
    location: str | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None
    date_to_inclusive_day: bool = False
    sort_by: str = 'created_at'
    sort_order: str = 'desc'
    limit: int = 10
    offset: int = 0

    @classmethod
    def from_args(cls, args: Mapping[str, Any]) -> 'ApplicationFilters':
        """Build filters from query-string style arguments, validating each one."""
        filters = cls()

        status = (args.get('status') or 'pending').lower()
        if status not in STATUS_FILTERS:
            raise ValidationError(f"status must be one of: {', '.join(sorted(STATUS_FILTERS))}")
        filters.status = status

        search = (args.get('search') or '').strip()
        filters.search = search or None

        raw_fields = args.get('search_fields')
        if raw_fields:
            if isinstance(raw_fields, str):
                raw_fields = raw_fields.split(',')
            fields = [f.strip() for f in raw_fields if f and f.strip()]
            unknown = [f for f in fields if f not in SEARCH_COLUMNS]
            if unknown or not fields:
                raise ValidationError(f"search_fields must be a subset of: {', '.join(SEARCH_COLUMNS)}")
            filters.search_fields = fields

        location = (args.get('location') or '').strip()
        filters.location = location or None

        if args.get('date_from'):
            filters.date_from = parse_date_bound(str(args['date_from']), 'date_from', end_of_range=False)
        if args.get('date_to'):
            filters.date_to = parse_date_bound(str(args['date_to']), 'date_to', end_of_range=True)
            filters.date_to_inclusive_day = len(str(args['date_to'])) == 10

        sort_by = args.get('sort_by') or 'created_at'
        if sort_by not in SORT_COLUMNS:
            raise ValidationError(f"sort_by must be one of: {', '.join(SORT_COLUMNS)}")
        filters.sort_by = sort_by

        sort_order = (args.get('sort_order') or 'desc').lower()
        if sort_order not in ('asc', 'desc'):
            raise ValidationError("sort_order must be 'asc' or 'desc'")
        filters.sort_order = sort_order

        max_limit = current_app.config.get('APPLICATIONS_MAX_PAGE_SIZE', 100)
        filters.limit = _parse_int(args.get('limit'), 'limit', 10)
        if not 1 <= filters.limit <= max_limit:
            raise ValidationError(f"limit must be between 1 and {max_limit}")
        filters.offset = _parse_int(args.get('offset'), 'offset', 0)
        if filters.offset < 0:
            raise ValidationError("offset must not be negative")
        return filters


@dataclass
class Page:
    data: list[Any]
    count: int
    limit: int
    offset: int

    @property
    def page(self) -> int:
        return self.offset // self.limit + 1

    @property
    def total_pages(self) -> int:
        return math.ceil(self.count / self.limit) if self.count else 0

    def to_dict(self, serializer: Callable[[Any], dict]) -> dict[str, Any]:
        return {
            'data': [serializer(item) for item in self.data],
            'count': self.count,
            'page': self.page,
            'limit': self.limit,
            'total_pages': self.total_pages,
        }


@dataclass
class ApplicationReview:
    """An application together with its decision history and reviewer."""

    application: ClubApplication
    history: list[tuple[Any, AdminUser | None]]
    reviewer: AdminUser | None


class ApplicationRepository:
    """Reads and guarded writes of ``ClubApplication`` rows."""

    def _store_failure(self, exc: Exception, operation: str) -> TransientStoreError:
        db.session.rollback()
        current_app.logger.error(f"Store error during {operation}: {exc}")
        return TransientStoreError("The application store is temporarily unavailable. Please retry.")

    def list(self, filters: ApplicationFilters) -> Page:
        stmt = select(ClubApplication)
        if filters.status != 'all':
            stmt = stmt.where(ClubApplication.status == ApplicationStatus(filters.status))
        if filters.search:
            term = contains_pattern(filters.search)
            stmt = stmt.where(or_(*[
                SEARCH_COLUMNS[f].ilike(term, escape=LIKE_ESCAPE) for f in filters.search_fields
            ]))
        if filters.location:
            stmt = stmt.where(
                ClubApplication.location.ilike(contains_pattern(filters.location), escape=LIKE_ESCAPE)
            )
        if filters.date_from:
            stmt = stmt.where(ClubApplication.created_at >= filters.date_from)
        if filters.date_to:
            if filters.date_to_inclusive_day:
                stmt = stmt.where(ClubApplication.created_at < filters.date_to)
            else:
                stmt = stmt.where(ClubApplication.created_at <= filters.date_to)

        column = SORT_COLUMNS[filters.sort_by]
        direction = column.asc() if filters.sort_order == 'asc' else column.desc()
        tiebreak = ClubApplication.id.asc() if filters.sort_order == 'asc' else ClubApplication.id.desc()

        try:
            count = db.session.scalar(select(func.count()).select_from(stmt.subquery())) or 0
            rows = db.session.scalars(
                stmt.order_by(direction, tiebreak).limit(filters.limit).offset(filters.offset)
            ).all()
        except DBAPIError as exc:
            raise self._store_failure(exc, 'list')
        return Page(data=list(rows), count=count, limit=filters.limit, offset=filters.offset)

    def get(self, club_id: str) -> ClubApplication:
        club_id = parse_application_id(club_id)
        try:
            application = db.session.get(ClubApplication, club_id)
        except DBAPIError as exc:
            raise self._store_failure(exc, 'get')
        if application is None:
            raise NotFoundError("Application not found", {'club_id': club_id})
        return application

    def get_review(self, club_id: str) -> ApplicationReview:
        application = self.get(club_id)
        reviewer = None
        if application.reviewed_by_id:
            reviewer = db.session.get(AdminUser, application.reviewed_by_id)
        return ApplicationReview(
            application=application,
            history=audit.application_history(application.id),
            reviewer=reviewer,
        )

    def update_status(
        self,
        club_id: str,
        status: ApplicationStatus,
        notes: str | None,
        admin_id: str,
    ) -> ClubApplication:
        """Write a review decision in one conditional UPDATE.

        The row only changes while it is still pending (unless re-decision is
        enabled), so two admins deciding the same application at once cannot
        both win. Audit entries are written by the caller.
        """
        if status == ApplicationStatus.PENDING:
            raise ValidationError("Applications cannot be returned to pending")

        club_id = parse_application_id(club_id)
        now = utcnow()
        stmt = (
            update(ClubApplication)
            .where(ClubApplication.id == club_id)
            .values(
                status=status,
                admin_notes=notes,
                reviewed_by_id=admin_id,
                reviewed_at=now,
                verified=status == ApplicationStatus.APPROVED,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        if not current_app.config.get('REVIEW_ALLOW_REDECISION', False):
            stmt = stmt.where(ClubApplication.status == ApplicationStatus.PENDING)

        try:
            result = db.session.execute(stmt)
            if result.rowcount == 0:
                db.session.rollback()
                current = db.session.get(ClubApplication, club_id)
                if current is None:
                    raise NotFoundError("Application not found", {'club_id': club_id})
                raise ConflictingReview(
                    f"Application has already been {current.status.value}",
                    {
                        'club_id': club_id,
                        'current_status': current.status.value,
                        'reviewed_by': current.reviewed_by_id,
                        'reviewed_at': current.reviewed_at.isoformat() if current.reviewed_at else None,
                    },
                )
            db.session.commit()
        except DBAPIError as exc:
            raise self._store_failure(exc, 'update_status')

        application = db.session.get(ClubApplication, club_id)
        db.session.refresh(application)
        return application

    def create(self, data: Mapping[str, Any]) -> ClubApplication:
        """Store a newly submitted application as pending."""
        email = data['contact_email'].strip().lower()
        existing = db.session.scalar(select(ClubApplication.id).where(ClubApplication.contact_email == email))
        if existing:
            raise ValidationError("An application with this contact email already exists")

        application = ClubApplication(
            name=data['name'].strip(),
            contact_email=email,
            contact_name=data.get('contact_name') or None,
            contact_phone=data.get('contact_phone') or None,
            location=data['location'].strip(),
            description=data.get('description') or None,
            website_url=data.get('website_url') or None,
            logo_url=data.get('logo_url') or None,
            sport_types=list(data.get('sport_types') or []),
            status=ApplicationStatus.PENDING,
        )
        try:
            db.session.add(application)
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise ValidationError("An application with this contact email already exists")
        except DBAPIError as exc:
            raise self._store_failure(exc, 'create')
        return application

    def stats(self) -> dict[str, int]:
        """Counts per status in a single aggregate query."""

        def _count(status: ApplicationStatus):
            return func.sum(case((ClubApplication.status == status, 1), else_=0))

        stmt = select(
            _count(ApplicationStatus.PENDING),
            _count(ApplicationStatus.APPROVED),
            _count(ApplicationStatus.REJECTED),
            func.count(ClubApplication.id),
        )
        try:
            pending, approved, rejected, total = db.session.execute(stmt).one()
        except DBAPIError as exc:
            raise self._store_failure(exc, 'stats')
        return {
            'pending': int(pending or 0),
            'approved': int(approved or 0),
            'rejected': int(rejected or 0),
            'total': int(total or 0),
        }


# Global repository instance
application_repository = ApplicationRepository()


__all__ = [
    'ApplicationFilters',
    'ApplicationRepository',
    'ApplicationReview',
    'Page',
    'application_repository',
    'parse_application_id',
    'parse_date_bound',
]
