"""
Report Service

Attendance, utilization and assessment analytics, CSV export and
system-wide metrics.
"""

import csv
import io
import logging
from typing import Any, Dict, List, Tuple

from django.db.models import Avg, Count, Max, Min, Q, Sum
from django.utils import timezone

from apps.core.models import Assessment, Booking, Branch, Slot, User

from . import BookingValidationError, ResourceNotFoundError

logger = logging.getLogger(__name__)

EXPORT_COLUMNS = {
    'attendance': ['Date', 'Time', 'Student', 'Phone', 'Teacher', 'Branch', 'Status', 'Attended'],
    'utilization': ['Date', 'Time', 'Teacher', 'Branch', 'Capacity', 'Booked', 'Available', 'Utilization %'],
    'assessments': ['Date', 'Student', 'Teacher', 'Branch', 'Score', 'Remarks'],
}


def _rate(part: int, whole: int) -> float:
    return round(part * 100.0 / whole, 1) if whole else 0.0


class ReportService:
    """
    Reporting over bookings, slots and assessments.

    All reports accept the same filters: date_from, date_to, branch_id and
    teacher_id. Dates refer to the slot date.
    """

    # ==========================================================================
    # Base querysets
    # ==========================================================================

    def _slots(self, date_from=None, date_to=None, branch_id=None, teacher_id=None):
        queryset = Slot.objects.all()
        if date_from:
            queryset = queryset.filter(date__gte=date_from)
        if date_to:
            queryset = queryset.filter(date__lte=date_to)
        if branch_id:
            queryset = queryset.filter(branch_id=branch_id)
        if teacher_id:
            queryset = queryset.filter(teacher_id=teacher_id)
        return queryset

    def _bookings(self, date_from=None, date_to=None, branch_id=None, teacher_id=None):
        queryset = Booking.objects.all()
        if date_from:
            queryset = queryset.filter(slot__date__gte=date_from)
        if date_to:
            queryset = queryset.filter(slot__date__lte=date_to)
        if branch_id:
            queryset = queryset.filter(slot__branch_id=branch_id)
        if teacher_id:
            queryset = queryset.filter(slot__teacher_id=teacher_id)
        return queryset

    def _assessments(self, date_from=None, date_to=None, branch_id=None, teacher_id=None):
        queryset = Assessment.objects.all()
        if date_from:
            queryset = queryset.filter(booking__slot__date__gte=date_from)
        if date_to:
            queryset = queryset.filter(booking__slot__date__lte=date_to)
        if branch_id:
            queryset = queryset.filter(booking__slot__branch_id=branch_id)
        if teacher_id:
            queryset = queryset.filter(teacher_id=teacher_id)
        return queryset

    @staticmethod
    def _status_counts(bookings) -> Dict[str, int]:
        counts = {status: 0 for status in Booking.Status.values}
        for row in bookings.order_by().values('status').annotate(total=Count('id')):
            counts[row['status']] = row['total']
        return counts

    @staticmethod
    def _seat_totals(slots) -> Tuple[int, int]:
        """(capacity, booked) summed over the slots."""
        capacity = slots.aggregate(total=Sum('capacity'))['total'] or 0
        booked = Booking.objects.filter(
            slot__in=slots,
            status__in=Booking.get_seat_holding_statuses()
        ).count()
        return capacity, booked

    # ==========================================================================
    # Reports
    # ==========================================================================

    def overview(self, **filters) -> Dict[str, Any]:
        bookings = self._bookings(**filters)
        slots = self._slots(**filters)
        by_status = self._status_counts(bookings)
        capacity, booked = self._seat_totals(slots)
        average = self._assessments(**filters).aggregate(avg=Avg('score'))['avg']

        branches = []
        branch_qs = Branch.objects.filter(is_active=True)
        if filters.get('branch_id'):
            branch_qs = branch_qs.filter(id=filters['branch_id'])
        for branch in branch_qs.order_by('name'):
            branch_filters = {**filters, 'branch_id': branch.id}
            branch_status = self._status_counts(self._bookings(**branch_filters))
            branch_capacity, branch_booked = self._seat_totals(self._slots(**branch_filters))
            branches.append({
                'branch_id': str(branch.id),
                'name': branch.name,
                'total_bookings': sum(branch_status.values()),
                'attendance_rate': _rate(
                    branch_status['COMPLETED'],
                    branch_status['COMPLETED'] + branch_status['NO_SHOW']
                ),
                'utilization_rate': _rate(branch_booked, branch_capacity),
            })

        return {
            'total_bookings': sum(by_status.values()),
            'bookings_by_status': by_status,
            'total_slots': slots.count(),
            'attendance_rate': _rate(by_status['COMPLETED'], by_status['COMPLETED'] + by_status['NO_SHOW']),
            'utilization_rate': _rate(booked, capacity),
            'average_score': round(float(average), 1) if average is not None else None,
            'branches': branches,
        }

    def attendance(self, **filters) -> Dict[str, Any]:
        bookings = self._bookings(**filters).exclude(status=Booking.Status.CANCELLED)
        by_status = self._status_counts(bookings)

        by_teacher = [
            {
                'teacher_id': str(row['slot__teacher_id']),
                'teacher': row['slot__teacher__name'],
                'completed': row['completed'],
                'no_show': row['no_show'],
                'attendance_rate': _rate(row['completed'], row['completed'] + row['no_show']),
            }
            for row in bookings.values('slot__teacher_id', 'slot__teacher__name').annotate(
                completed=Count('id', filter=Q(status=Booking.Status.COMPLETED)),
                no_show=Count('id', filter=Q(status=Booking.Status.NO_SHOW)),
            ).order_by('slot__teacher__name')
        ]

        return {
            'summary': {
                'total': sum(by_status.values()),
                'attended': by_status['COMPLETED'],
                'no_show': by_status['NO_SHOW'],
                'pending': by_status['CONFIRMED'],
                'attendance_rate': _rate(by_status['COMPLETED'], by_status['COMPLETED'] + by_status['NO_SHOW']),
            },
            'by_teacher': by_teacher,
            'rows': self.attendance_rows(**filters),
        }

    def utilization(self, **filters) -> Dict[str, Any]:
        slots = self._slots(**filters)
        capacity, booked = self._seat_totals(slots)

        booked_by_date = dict(
            Booking.objects.filter(
                slot__in=slots,
                status__in=Booking.get_seat_holding_statuses()
            ).order_by().values_list('slot__date').annotate(total=Count('id'))
        )
        by_date = []
        for row in slots.values('date').annotate(slots=Count('id'), capacity=Sum('capacity')).order_by('date'):
            day_booked = booked_by_date.get(row['date'], 0)
            by_date.append({
                'date': row['date'].isoformat(),
                'slots': row['slots'],
                'capacity': row['capacity'],
                'booked': day_booked,
                'utilization_rate': _rate(day_booked, row['capacity']),
            })

        return {
            'summary': {
                'slots': slots.count(),
                'blocked_slots': slots.filter(is_blocked=True).count(),
                'capacity': capacity,
                'booked': booked,
                'available': max(capacity - booked, 0),
                'utilization_rate': _rate(booked, capacity),
            },
            'by_date': by_date,
            'rows': self.utilization_rows(**filters),
        }

    def assessments(self, **filters) -> Dict[str, Any]:
        assessments = self._assessments(**filters)
        stats = assessments.aggregate(
            total=Count('id'),
            average=Avg('score'),
            lowest=Min('score'),
            highest=Max('score'),
        )

        distribution = {
            str(row['score']): row['total']
            for row in assessments.values('score').annotate(total=Count('id')).order_by('score')
        }

        return {
            'summary': {
                'total': stats['total'],
                'average_score': round(float(stats['average']), 1) if stats['average'] is not None else None,
                'lowest_score': float(stats['lowest']) if stats['lowest'] is not None else None,
                'highest_score': float(stats['highest']) if stats['highest'] is not None else None,
            },
            'distribution': distribution,
            'rows': self.assessment_rows(**filters),
        }

    # ==========================================================================
    # Rows (shared by JSON reports and CSV export)
    # ==========================================================================

    def attendance_rows(self, **filters) -> List[List[Any]]:
        bookings = self._bookings(**filters).exclude(
            status=Booking.Status.CANCELLED
        ).select_related('student', 'slot', 'slot__teacher', 'slot__branch').order_by(
            'slot__date', 'slot__start_time'
        )
        return [
            [
                b.slot.date.isoformat(),
                b.slot.start_time.strftime('%H:%M'),
                b.student.name,
                b.student.phone_number or '',
                b.slot.teacher.name,
                b.slot.branch.name,
                b.status,
                '' if b.attended is None else ('Yes' if b.attended else 'No'),
            ]
            for b in bookings
        ]

    def utilization_rows(self, **filters) -> List[List[Any]]:
        slots = self._slots(**filters).with_booking_counts().select_related(
            'teacher', 'branch'
        ).order_by('date', 'start_time')
        return [
            [
                s.date.isoformat(),
                s.start_time.strftime('%H:%M'),
                s.teacher.name,
                s.branch.name,
                s.capacity,
                s.booked_count,
                max(s.capacity - s.booked_count, 0),
                _rate(s.booked_count, s.capacity),
            ]
            for s in slots
        ]

    def assessment_rows(self, **filters) -> List[List[Any]]:
        assessments = self._assessments(**filters).select_related(
            'booking__student', 'booking__slot', 'booking__slot__branch', 'teacher'
        ).order_by('booking__slot__date')
        return [
            [
                a.booking.slot.date.isoformat(),
                a.booking.student.name,
                a.teacher.name,
                a.booking.slot.branch.name,
                str(a.score),
                a.remarks,
            ]
            for a in assessments
        ]

    def export_csv(self, report_type: str, **filters) -> Tuple[str, str]:
        """Returns (filename, csv_text). Raises 404 when the report is empty."""
        row_builders = {
            'attendance': self.attendance_rows,
            'utilization': self.utilization_rows,
            'assessments': self.assessment_rows,
        }
        if report_type not in row_builders:
            raise BookingValidationError(
                f"Unknown report type: {report_type}",
                details={'report_type': f"Must be one of: {', '.join(row_builders)}"}
            )

        rows = row_builders[report_type](**filters)
        if not rows:
            raise ResourceNotFoundError("No data found for the selected filters")

        output = io.StringIO()
        writer = csv.writer(output)
        writer.writerow(EXPORT_COLUMNS[report_type])
        writer.writerows(rows)

        filename = f"{report_type}-report-{timezone.localdate():%Y-%m-%d}.csv"
        logger.info(f"Exported {report_type} report with {len(rows)} rows")
        return filename, output.getvalue()

    # ==========================================================================
    # System metrics
    # ==========================================================================

    def system_metrics(self) -> Dict[str, Any]:
        users_by_role = {role: 0 for role in User.Role.values}
        for row in User.objects.filter(is_active=True).order_by().values('role').annotate(total=Count('id')):
            users_by_role[row['role']] = row['total']

        bookings_by_status = self._status_counts(Booking.objects.all())
        today = timezone.localdate()

        branches = []
        for branch in Branch.objects.filter(is_active=True).order_by('name'):
            status = self._status_counts(self._bookings(branch_id=branch.id))
            capacity, booked = self._seat_totals(self._slots(branch_id=branch.id))
            branches.append({
                'branch_id': str(branch.id),
                'name': branch.name,
                'slots': self._slots(branch_id=branch.id).count(),
                'bookings': sum(status.values()),
                'utilization_rate': _rate(booked, capacity),
                'attendance_rate': _rate(status['COMPLETED'], status['COMPLETED'] + status['NO_SHOW']),
            })

        return {
            'users': {
                'total': sum(users_by_role.values()),
                'by_role': users_by_role,
            },
            'branches': {
                'total': Branch.objects.filter(is_active=True).count(),
                'details': branches,
            },
            'slots': {
                'total': Slot.objects.count(),
                'upcoming': Slot.objects.upcoming().count(),
                'today': Slot.objects.filter(date=today).count(),
            },
            'bookings': {
                'total': sum(bookings_by_status.values()),
                'by_status': bookings_by_status,
            },
            'generated_at': timezone.now().isoformat(),
        }
