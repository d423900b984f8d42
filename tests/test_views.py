import json
from datetime import timedelta

import pytest
from django.utils import timezone

from conftest import SUBSTITUTE_TG_ID, make_lesson
from school.models import Attendance, Lesson, LessonChangeLog
from school.services.replacements import replace_teacher

pytestmark = pytest.mark.django_db


def post_json(client, url, data, **extra):
    return client.post(url, data=json.dumps(data), content_type='application/json', **extra)


def patch_json(client, url, data, **extra):
    return client.patch(url, data=json.dumps(data), content_type='application/json', **extra)


@pytest.fixture
def staff_client(client, admin_user):
    client.force_login(admin_user)
    return client


@pytest.fixture
def auth_header(make_init_data):
    return {'HTTP_X_TELEGRAM_INIT_DATA': make_init_data()}


class TestHealth:

    def test_health(self, client):
        response = client.get('/health/')

        assert response.status_code == 200
        assert response.json()['status'] == 'ok'


class TestAdminApi:

    def test_anonymous_is_401(self, client, group):
        response = post_json(client, f'/api/groups/{group.pk}/generate-lessons/', {})

        assert response.status_code == 401

    def test_non_staff_is_403(self, client, group, django_user_model):
        client.force_login(django_user_model.objects.create_user(username='guest', password='x'))

        response = post_json(client, f'/api/groups/{group.pk}/generate-lessons/', {})

        assert response.status_code == 403

    def test_generate_group_lessons(self, staff_client, group, admin_user):
        response = post_json(staff_client, f'/api/groups/{group.pk}/generate-lessons/', {'weeks_ahead': 2})

        assert response.status_code == 200
        assert response.json() == {'generated': 2, 'skipped': 0}
        assert set(Lesson.objects.values_list('created_by', flat=True)) == {admin_user.pk}

        again = post_json(staff_client, f'/api/groups/{group.pk}/generate-lessons/', {'weeks_ahead': 2})
        assert again.json() == {'generated': 0, 'skipped': 2}

    def test_generate_unknown_group(self, staff_client):
        response = post_json(staff_client, '/api/groups/999999/generate-lessons/', {})

        assert response.status_code == 404

    def test_generate_bad_weeks(self, staff_client, group):
        response = post_json(staff_client, f'/api/groups/{group.pk}/generate-lessons/', {'weeks_ahead': 'many'})

        assert response.status_code == 400

    def test_generate_all(self, staff_client, group):
        response = post_json(staff_client, '/api/schedule/generate-all/', {'weeks_ahead': 3})

        body = response.json()
        assert response.status_code == 200
        assert body['total_generated'] == 3
        assert body['results'][0]['error'] is None

    def test_create_single_lesson(self, staff_client, group):
        payload = {'group_id': group.pk, 'lesson_date': '2024-02-14', 'start_time': '18:00', 'duration_minutes': 60}

        created = post_json(staff_client, '/api/lessons/single/', payload)
        duplicate = post_json(staff_client, '/api/lessons/single/', payload)

        assert created.status_code == 201
        assert created.json()['lesson']['public_id'].startswith('LSN-')
        assert duplicate.status_code == 409

    def test_create_single_lesson_missing_field(self, staff_client, group):
        response = post_json(staff_client, '/api/lessons/single/', {'group_id': group.pk})

        assert response.status_code == 400

    def test_patch_lesson(self, staff_client, lesson):
        response = patch_json(staff_client, f'/api/lessons/{lesson.pk}/', {'topic': 'Arduino', 'status': 'done'})

        assert response.status_code == 200
        body = response.json()['lesson']
        assert body['topic'] == 'Arduino'
        assert body['status'] == 'done'
        assert body['reported_via'] == 'admin'

    def test_patch_invalid_transition(self, staff_client, lesson):
        patch_json(staff_client, f'/api/lessons/{lesson.pk}/', {'status': 'done'})

        response = patch_json(staff_client, f'/api/lessons/{lesson.pk}/', {'status': 'canceled'})

        assert response.status_code == 409

    def test_patch_invalid_json(self, staff_client, lesson):
        response = staff_client.patch(f'/api/lessons/{lesson.pk}/', data='{', content_type='application/json')

        assert response.status_code == 400

    def test_admin_attendance_on_past_lesson(self, staff_client, group, students):
        past = make_lesson(group, timezone.localdate() - timedelta(days=7))

        response = post_json(
            staff_client, f'/api/lessons/{past.pk}/attendance/', {'student_id': students[0].pk, 'status': 'sick'}
        )

        assert response.status_code == 200
        assert response.json() == {'status': 'absent', 'lesson_status': 'done'}

    def test_replace_teacher(self, staff_client, lesson, substitute):
        response = post_json(
            staff_client, f'/api/lessons/{lesson.pk}/replace-teacher/', {'replacement_teacher_id': substitute.pk}
        )

        assert response.status_code == 200
        assert response.json()['replacement_teacher_id'] == substitute.pk

    def test_send_reminders_requires_ids(self, staff_client):
        response = post_json(staff_client, '/api/notifications/send-reminders/', {'lesson_ids': []})

        assert response.status_code == 400

    def test_send_reminders(self, staff_client, lesson, monkeypatch):
        sent = []
        monkeypatch.setattr(
            'school.services.telegram.TelegramNotificationService.notify_lesson_reminder',
            lambda self, telegram_id, text, reply_markup=None: sent.append(telegram_id) or True,
        )

        response = post_json(staff_client, '/api/notifications/send-reminders/', {'lesson_ids': [lesson.pk, 999999]})

        summary = response.json()['summary']
        assert summary == {'total': 2, 'sent_count': 1, 'skipped_count': 1}
        assert len(sent) == 1


class TestTeacherApp:

    def test_auth(self, client, teacher, auth_header):
        response = post_json(client, '/teacher-app/auth/', {}, **auth_header)

        assert response.status_code == 200
        assert response.json()['teacher']['id'] == teacher.pk

    def test_auth_with_body_init_data(self, client, teacher, make_init_data):
        response = post_json(client, '/teacher-app/auth/', {'init_data': make_init_data()})

        assert response.status_code == 200
        assert response.json()['status'] == 'authorized'

    def test_invalid_init_data(self, client, teacher):
        response = post_json(client, '/teacher-app/auth/', {}, HTTP_X_TELEGRAM_INIT_DATA='user=%7B%7D&hash=deadbeef')

        assert response.status_code == 401
        assert response.json() == {'error': 'Invalid initData'}

    def test_stale_init_data(self, client, teacher, make_init_data):
        stale = make_init_data(auth_date=int(timezone.now().timestamp()) - 90000)

        response = post_json(client, '/teacher-app/auth/', {}, HTTP_X_TELEGRAM_INIT_DATA=stale)

        assert response.status_code == 401

    def test_non_ascii_hash_is_401(self, client, teacher, make_init_data):
        init_data = make_init_data()[:-1] + '%C3%A9'

        response = post_json(client, '/teacher-app/auth/', {'init_data': init_data})

        assert response.status_code == 401
        assert response.json() == {'error': 'Invalid initData'}

    def test_unknown_teacher(self, client, make_init_data):
        response = post_json(client, '/teacher-app/auth/', {}, HTTP_X_TELEGRAM_INIT_DATA=make_init_data(telegram_id=5))

        assert response.status_code == 401

    def test_schedule_lists_own_lessons(self, client, group, lesson, substitute, admin_actor, auth_header):
        replaced = make_lesson(group, lesson.lesson_date + timedelta(days=7))
        replace_teacher(replaced.pk, substitute.pk, admin_actor)

        response = client.get('/teacher-app/schedule/', **auth_header)

        assert [item['id'] for item in response.json()['lessons']] == [lesson.pk]

    def test_lesson_details(self, client, lesson, students, auth_header):
        Attendance.objects.create(lesson=lesson, student=students[0], status=Attendance.Status.PRESENT)

        response = client.get(f'/teacher-app/lessons/{lesson.pk}/', **auth_header)

        body = response.json()
        assert response.status_code == 200
        assert body['students'][0]['attendance_status'] == 'present'
        assert body['students'][1]['attendance_status'] is None

    def test_patch_topic(self, client, lesson, auth_header):
        response = patch_json(client, f'/teacher-app/lessons/{lesson.pk}/', {'topic': 'Цикли'}, **auth_header)

        assert response.status_code == 200
        entry = LessonChangeLog.objects.get(lesson=lesson)
        assert entry.changed_via == 'telegram'
        assert entry.changed_by < 0

    def test_foreign_lesson_forbidden(self, client, lesson, substitute, make_init_data):
        response = client.get(
            f'/teacher-app/lessons/{lesson.pk}/', HTTP_X_TELEGRAM_INIT_DATA=make_init_data(SUBSTITUTE_TG_ID)
        )

        assert response.status_code == 403

    def test_mark_attendance(self, client, lesson, students, auth_header):
        response = post_json(
            client, f'/teacher-app/lessons/{lesson.pk}/attendance/',
            {'student_id': students[0].pk, 'status': 'present'}, **auth_header,
        )

        assert response.status_code == 200
        assert response.json() == {'success': True, 'status': 'present', 'lesson_status': 'done'}

    def test_mark_attendance_with_init_data_in_body(self, client, lesson, students, make_init_data):
        response = post_json(
            client, f'/teacher-app/lessons/{lesson.pk}/attendance/',
            {'student_id': students[0].pk, 'status': 'absent', 'init_data': make_init_data()},
        )

        assert response.status_code == 200

    def test_past_lesson_locked(self, client, group, students, auth_header):
        past = make_lesson(group, timezone.localdate() - timedelta(days=1))

        response = post_json(
            client, f'/teacher-app/lessons/{past.pk}/attendance/',
            {'student_id': students[0].pk, 'status': 'present'}, **auth_header,
        )

        assert response.status_code == 403
        assert not Attendance.objects.filter(lesson=past).exists()

    def test_patch_with_init_data_in_body(self, client, lesson, make_init_data):
        response = patch_json(
            client, f'/teacher-app/lessons/{lesson.pk}/', {'notes': 'Без ноутбуків', 'init_data': make_init_data()}
        )

        assert response.status_code == 200
        lesson.refresh_from_db()
        assert lesson.notes == 'Без ноутбуків'
