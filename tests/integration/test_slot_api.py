"""
Integration Tests for Slot API
"""

from datetime import time, timedelta

import pytest
from django.utils import timezone
from rest_framework import status

from apps.core.models import AuditLog, Slot


def in_days(days):
    return (timezone.localdate() + timedelta(days=days)).isoformat()


@pytest.mark.django_db
class TestSlotAPI:
    """Integration tests for slot endpoints."""

    @pytest.fixture
    def slot_data(self, branch, teacher):
        return {
            'branch_id': str(branch.id),
            'teacher_id': str(teacher.id),
            'date': in_days(4),
            'start_time': '10:00',
            'end_time': '10:30',
            'capacity': 2,
        }

    def test_create_slot(self, auth_client, branch_admin, slot_data):
        response = auth_client(branch_admin).post('/api/v1/slots/', slot_data, format='json')

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['start_time'] == '10:00'
        assert response.data['available_spots'] == 2
        assert response.data['teacher_name'] == 'Nadia Rahman'

    def test_overlapping_slot(self, auth_client, branch_admin, slot_data):
        client = auth_client(branch_admin)
        client.post('/api/v1/slots/', slot_data, format='json')

        response = client.post('/api/v1/slots/', {
            **slot_data, 'start_time': '10:15', 'end_time': '10:45',
        }, format='json')

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.data['code'] == 'CONFLICT_ERROR'
        assert len(response.data['details']['conflicting_slots']) == 1

    def test_duration_too_short(self, auth_client, branch_admin, slot_data):
        response = auth_client(branch_admin).post('/api/v1/slots/', {
            **slot_data, 'end_time': '10:10',
        }, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert 'end_time' in response.data['details']

    def test_other_branch_admin(self, auth_client, create_user, other_branch, slot_data):
        outsider = create_user('BRANCH_ADMIN', branch=other_branch)

        response = auth_client(outsider).post('/api/v1/slots/', slot_data, format='json')

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_teacher_cannot_create(self, auth_client, teacher, slot_data):
        response = auth_client(teacher).post('/api/v1/slots/', slot_data, format='json')

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.data['code'] == 'AUTHORIZATION_ERROR'

    def test_update_capacity_below_booked(self, auth_client, branch_admin, slot, create_user, create_booking):
        create_booking(create_user(), slot)
        create_booking(create_user(), slot)

        response = auth_client(branch_admin).patch(
            f'/api/v1/slots/{slot.id}/', {'capacity': 1}, format='json'
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['details'] == {'capacity': 1, 'booked': 2}

    def test_delete_booked_slot(self, auth_client, branch_admin, slot, student, create_booking):
        create_booking(student, slot)

        response = auth_client(branch_admin).delete(f'/api/v1/slots/{slot.id}/')

        assert response.status_code == status.HTTP_409_CONFLICT

    def test_delete_slot(self, auth_client, super_admin, slot):
        response = auth_client(super_admin).delete(f'/api/v1/slots/{slot.id}/')

        assert response.status_code == status.HTTP_204_NO_CONTENT
        assert not Slot.objects.filter(id=slot.id).exists()

    def test_bulk_create(self, auth_client, branch_admin, slot_data):
        data = {**slot_data, 'dates': [in_days(4), in_days(5), in_days(-1)]}
        data.pop('date')

        response = auth_client(branch_admin).post('/api/v1/slots/bulk/', data, format='json')

        assert response.status_code == status.HTTP_201_CREATED
        assert len(response.data['created']) == 2
        assert response.data['errors'][0]['date'] == in_days(-1)

    def test_bulk_create_nothing_created(self, auth_client, branch_admin, slot_data):
        data = {**slot_data, 'dates': [in_days(-1)]}
        data.pop('date')

        response = auth_client(branch_admin).post('/api/v1/slots/bulk/', data, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert len(response.data['details']['errors']) == 1

    def test_block_then_booking_refused(self, auth_client, branch_admin, student, slot):
        response = auth_client(branch_admin).post(
            f'/api/v1/slots/{slot.id}/block/', {'reason': 'Power outage'}, format='json'
        )
        assert response.status_code == status.HTTP_200_OK
        assert response.data['is_blocked'] is True

        response = auth_client(student).post('/api/v1/bookings/', {'slot_id': str(slot.id)}, format='json')
        assert response.status_code == status.HTTP_409_CONFLICT

    def test_unblock(self, auth_client, branch_admin, slot):
        slot.block('Holiday')

        response = auth_client(branch_admin).post(f'/api/v1/slots/{slot.id}/unblock/')

        assert response.status_code == status.HTTP_200_OK
        assert response.data['is_blocked'] is False

    def test_students_see_upcoming_unblocked(self, auth_client, student, slot, past_slot, create_slot):
        blocked = create_slot(start_time=time(12, 0), end_time=time(12, 30))
        blocked.block('Closed')

        response = auth_client(student).get('/api/v1/slots/')

        assert response.status_code == status.HTTP_200_OK
        assert [s['id'] for s in response.data['results']] == [str(slot.id)]

    def test_available(self, auth_client, student, slot, create_slot, create_user, create_booking):
        full = create_slot(start_time=time(11, 0), end_time=time(11, 30))
        create_booking(create_user(), full)

        response = auth_client(student).get('/api/v1/slots/available/')

        assert response.status_code == status.HTTP_200_OK
        assert [s['id'] for s in response.data['results']] == [str(slot.id)]

    def test_available_filtered_by_branch(self, auth_client, student, slot, other_branch):
        response = auth_client(student).get('/api/v1/slots/available/', {'branch': str(other_branch.id)})

        assert response.status_code == status.HTTP_200_OK
        assert response.data['count'] == 0

    def test_bad_filter_value(self, auth_client, student):
        response = auth_client(student).get('/api/v1/slots/available/', {'branch': 'not-a-uuid'})

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_writes_are_audited(self, auth_client, branch_admin, slot):
        auth_client(branch_admin).post(
            f'/api/v1/slots/{slot.id}/block/', {'reason': 'Power outage'}, format='json'
        )

        log = AuditLog.objects.get(entity_type='slots')
        assert log.action == AuditLog.Action.UPDATE
        assert log.entity_id == str(slot.id)
        assert log.user == branch_admin
        assert log.new_values == {'operation': 'block', 'reason': 'Power outage'}

    def test_create_audit_uses_new_id(self, auth_client, branch_admin, slot_data):
        response = auth_client(branch_admin).post('/api/v1/slots/', slot_data, format='json')

        log = AuditLog.objects.get(entity_type='slots')
        assert log.action == AuditLog.Action.CREATE
        assert log.entity_id == response.data['id']
