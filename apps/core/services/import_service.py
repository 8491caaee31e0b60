"""
Student Import Service

Bulk registration of students from a CSV file with the columns
`name,phoneNumber,email`. A header row is optional.
"""

import csv
import io
import logging
from typing import Any, Dict, List, Optional

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction

from apps.core.models import Branch, User
from shared.common.validators import validate_email, validate_name, validate_phone_number

from . import ImportValidationError

logger = logging.getLogger(__name__)

TEMPLATE_HEADER = ['name', 'phoneNumber', 'email']
TEMPLATE_SAMPLE_ROWS = [
    ['Rahim Uddin', '+8801712345678', 'rahim@example.com'],
    ['Karima Begum', '01812345678', ''],
]

MAX_FILE_SIZE = 5 * 1024 * 1024
MAX_ROWS = 5000


class StudentImportService:
    """Parse, validate and import student rows."""

    def get_template(self) -> str:
        output = io.StringIO()
        writer = csv.writer(output)
        writer.writerow(TEMPLATE_HEADER)
        writer.writerows(TEMPLATE_SAMPLE_ROWS)
        return output.getvalue()

    # ==========================================================================
    # Parsing
    # ==========================================================================

    def parse(self, uploaded_file) -> List[Dict[str, Any]]:
        """
        Read the upload into row dicts numbered as in a spreadsheet
        (the first data row after a header is row 2).
        """
        if uploaded_file is None:
            raise ImportValidationError("No file uploaded", details={'file': 'This field is required'})

        name = getattr(uploaded_file, 'name', '') or ''
        if not name.lower().endswith('.csv'):
            raise ImportValidationError("Only CSV files are supported", details={'file': name})

        if getattr(uploaded_file, 'size', 0) > MAX_FILE_SIZE:
            raise ImportValidationError("File is larger than 5 MB")

        raw = uploaded_file.read()
        try:
            content = raw.decode('utf-8-sig') if isinstance(raw, bytes) else raw
        except UnicodeDecodeError:
            raise ImportValidationError("File must be UTF-8 encoded")

        rows = []
        for line_number, values in enumerate(csv.reader(io.StringIO(content)), start=1):
            if not any(value.strip() for value in values):
                continue
            if line_number == 1 and values[0].strip().lower() == 'name':
                continue

            values = [value.strip() for value in values] + ['', '', '']
            rows.append({
                'row': line_number,
                'name': values[0],
                'phone_number': values[1],
                'email': values[2],
            })

        if not rows:
            raise ImportValidationError("File contains no data rows")
        if len(rows) > MAX_ROWS:
            raise ImportValidationError(f"File has more than {MAX_ROWS} rows")

        return rows

    # ==========================================================================
    # Validation
    # ==========================================================================

    def validate_rows(self, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Attach `errors` (field -> message) and cleaned `data` to each row."""
        seen_phones = set()
        results = []

        candidate_phones = []
        for row in rows:
            try:
                candidate_phones.append(validate_phone_number(row['phone_number']))
            except DjangoValidationError:
                pass
        registered = set(
            User.objects.filter(phone_number__in=candidate_phones).values_list('phone_number', flat=True)
        )

        for row in rows:
            errors = {}
            data = {'name': row['name'], 'phone_number': row['phone_number'], 'email': row['email'] or None}

            try:
                data['name'] = validate_name(row['name'])
            except DjangoValidationError as e:
                errors['name'] = e.messages[0]

            if not row['phone_number']:
                errors['phone_number'] = 'Phone number is required'
            else:
                try:
                    phone = validate_phone_number(row['phone_number'])
                except DjangoValidationError as e:
                    errors['phone_number'] = e.messages[0]
                else:
                    data['phone_number'] = phone
                    if phone in seen_phones:
                        errors['phone_number'] = 'Duplicate phone number in file'
                    elif phone in registered:
                        errors['phone_number'] = 'Phone number is already registered'
                    seen_phones.add(phone)

            if row['email']:
                try:
                    data['email'] = validate_email(row['email'])
                except DjangoValidationError as e:
                    errors['email'] = e.messages[0]

            results.append({'row': row['row'], 'data': data, 'errors': errors})

        return results

    def preview(self, uploaded_file) -> Dict[str, Any]:
        results = self.validate_rows(self.parse(uploaded_file))
        valid = sum(1 for result in results if not result['errors'])

        return {
            'total': len(results),
            'valid': valid,
            'invalid': len(results) - valid,
            'rows': results,
        }

    # ==========================================================================
    # Import
    # ==========================================================================

    @transaction.atomic
    def import_students(self, uploaded_file, branch: Optional[Branch] = None, imported_by=None) -> Dict[str, Any]:
        """Create every valid row as a STUDENT; invalid rows are reported and skipped."""
        results = self.validate_rows(self.parse(uploaded_file))

        emails_taken = set(
            User.objects.filter(
                email__in=[r['data']['email'] for r in results if r['data']['email']]
            ).values_list('email', flat=True)
        )

        created, errors = [], []
        for result in results:
            data = result['data']
            if not result['errors'] and data['email'] and data['email'] in emails_taken:
                result['errors']['email'] = 'Email is already registered'

            if result['errors']:
                errors.append({'row': result['row'], 'errors': result['errors']})
                continue

            student = User.objects.create_user(
                data['name'],
                phone_number=data['phone_number'],
                email=data['email'],
                role=User.Role.STUDENT,
                branch=branch,
            )
            if data['email']:
                emails_taken.add(data['email'])
            created.append({
                'id': str(student.id),
                'name': student.name,
                'phone_number': student.phone_number,
            })

        logger.info(
            f"Imported {len(created)} students ({len(errors)} skipped) "
            f"by {getattr(imported_by, 'id', None)}"
        )
        return {
            'created': created,
            'skipped': len(errors),
            'errors': errors,
        }
