from datetime import timedelta

import pytest
from django.utils import timezone

from conftest import make_lesson
from school.exceptions import NotFound, PastLessonLocked, ValidationError
from school.models import Attendance, Channel, Lesson, LessonChangeLog
from school.services.attendance import normalize_status, set_attendance

pytestmark = pytest.mark.django_db


class TestNormalizeStatus:

    @pytest.mark.parametrize('raw, stored', [
        ('present', 'present'),
        ('absent', 'absent'),
        ('sick', 'absent'),
        (' SICK ', 'absent'),
        ('makeup_planned', 'makeup_planned'),
        ('makeup_done', 'makeup_done'),
    ])
    def test_mapping(self, raw, stored):
        assert normalize_status(raw) == stored

    @pytest.mark.parametrize('raw', ['late', '', None])
    def test_unknown_status(self, raw):
        with pytest.raises(ValidationError):
            normalize_status(raw)


class TestSetAttendance:

    def test_sick_is_stored_as_absent(self, lesson, students, admin_actor):
        result = set_attendance(lesson.pk, students[0].pk, 'sick', admin_actor)

        assert result.status == Attendance.Status.ABSENT
        assert Attendance.objects.get(lesson=lesson, student=students[0]).status == 'absent'

    def test_upsert_keeps_one_row_with_latest_status(self, lesson, students, admin_actor, telegram_actor):
        set_attendance(lesson.pk, students[0].pk, 'present', admin_actor)
        set_attendance(lesson.pk, students[0].pk, 'absent', telegram_actor)

        rows = Attendance.objects.filter(lesson=lesson, student=students[0])
        assert rows.count() == 1
        row = rows.get()
        assert row.status == Attendance.Status.ABSENT
        assert row.updated_by == telegram_actor.user_id

    def test_first_mark_completes_lesson_once(self, lesson, students, telegram_actor):
        first = set_attendance(lesson.pk, students[0].pk, 'present', telegram_actor)
        second = set_attendance(lesson.pk, students[1].pk, 'absent', telegram_actor)

        assert first.lesson_completed is True
        assert first.lesson_status == Lesson.Status.DONE
        assert second.lesson_completed is False
        assert second.lesson_status == Lesson.Status.DONE

        lesson.refresh_from_db()
        assert lesson.reported_via == Channel.TELEGRAM
        assert LessonChangeLog.objects.filter(lesson=lesson, field_name='status').count() == 1

    def test_attendance_changes_are_audited(self, lesson, students, admin_actor):
        set_attendance(lesson.pk, students[0].pk, 'present', admin_actor)
        set_attendance(lesson.pk, students[0].pk, 'present', admin_actor)
        set_attendance(lesson.pk, students[0].pk, 'sick', admin_actor)

        entries = LessonChangeLog.objects.filter(lesson=lesson, field_name=f'attendance:{students[0].pk}')
        assert [(e.old_value, e.new_value) for e in entries] == [(None, 'present'), ('present', 'absent')]

    def test_past_lesson_locked_for_telegram(self, group, students, telegram_actor):
        yesterday = make_lesson(group, timezone.localdate() - timedelta(days=1))

        with pytest.raises(PastLessonLocked):
            set_attendance(yesterday.pk, students[0].pk, 'present', telegram_actor)

        assert not Attendance.objects.filter(lesson=yesterday).exists()
        yesterday.refresh_from_db()
        assert yesterday.status == Lesson.Status.SCHEDULED

    def test_past_lesson_open_for_admin(self, group, students, admin_actor):
        yesterday = make_lesson(group, timezone.localdate() - timedelta(days=1))

        result = set_attendance(yesterday.pk, students[0].pk, 'present', admin_actor)

        assert result.status == Attendance.Status.PRESENT
        assert result.lesson_status == Lesson.Status.DONE

    def test_today_is_not_past(self, lesson, students, telegram_actor):
        result = set_attendance(lesson.pk, students[0].pk, 'present', telegram_actor, today=lesson.lesson_date)

        assert result.status == Attendance.Status.PRESENT

    def test_invalid_status_writes_nothing(self, lesson, students, admin_actor):
        with pytest.raises(ValidationError):
            set_attendance(lesson.pk, students[0].pk, 'late', admin_actor)

        assert not Attendance.objects.exists()

    def test_unknown_lesson(self, students, admin_actor):
        with pytest.raises(NotFound):
            set_attendance(999999, students[0].pk, 'present', admin_actor)

    def test_unknown_student(self, lesson, admin_actor):
        with pytest.raises(NotFound):
            set_attendance(lesson.pk, 999999, 'present', admin_actor)

    def test_canceled_lesson_keeps_status(self, lesson, students, admin_actor):
        Lesson.objects.filter(pk=lesson.pk).update(status=Lesson.Status.CANCELED)

        result = set_attendance(lesson.pk, students[0].pk, 'present', admin_actor)

        assert result.lesson_status == Lesson.Status.CANCELED
        assert result.lesson_completed is False
