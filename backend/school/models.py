import secrets

from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.utils import timezone


PUBLIC_ID_CHARSET = 'ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789'


def generate_public_id(prefix: str) -> str:
    """Публичный ID вида LSN-7K2Q9ZD1 (8–10 символов после префикса)."""
    length = 8 + secrets.randbelow(3)
    random_part = ''.join(secrets.choice(PUBLIC_ID_CHARSET) for _ in range(length))
    return f"{prefix}-{random_part}"


def generate_lesson_public_id() -> str:
    return generate_public_id('LSN')


def default_group_timezone() -> str:
    return settings.DEFAULT_GROUP_TIMEZONE


class Channel(models.TextChoices):
    """Откуда пришло изменение."""

    ADMIN = 'admin', 'Админка'
    TELEGRAM = 'telegram', 'Telegram'


class Teacher(models.Model):
    """Преподаватель."""

    name = models.CharField(max_length=255)
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='teacher_profile',
    )
    telegram_id = models.CharField(max_length=32, null=True, blank=True, unique=True, db_index=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = 'Преподаватель'
        verbose_name_plural = 'Преподаватели'
        ordering = ['name']

    def __str__(self):
        return self.name


class Student(models.Model):
    """Ученик."""

    full_name = models.CharField(max_length=255)
    phone = models.CharField(max_length=32, blank=True, default='')
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = 'Ученик'
        verbose_name_plural = 'Ученики'
        ordering = ['full_name']

    def __str__(self):
        return self.full_name


class Group(models.Model):
    """Группа: еженедельный слот занятий."""

    class Status(models.TextChoices):
        ACTIVE = 'active', 'Активна'
        INACTIVE = 'inactive', 'Неактивна'

    title = models.CharField(max_length=255)
    teacher = models.ForeignKey(Teacher, on_delete=models.PROTECT, related_name='groups')
    # ISO: 1 понедельник, 7 воскресенье
    weekly_day = models.PositiveSmallIntegerField(
        validators=[MinValueValidator(1), MaxValueValidator(7)],
        verbose_name='День недели',
    )
    start_time = models.TimeField(verbose_name='Время начала')
    duration_minutes = models.PositiveIntegerField(
        default=90,
        validators=[MinValueValidator(1), MaxValueValidator(480)],
        verbose_name='Длительность (мин)',
    )
    timezone = models.CharField(max_length=64, default=default_group_timezone)
    start_date = models.DateField()
    end_date = models.DateField(null=True, blank=True)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.ACTIVE)
    is_deleted = models.BooleanField(default=False)
    students = models.ManyToManyField(Student, through='GroupStudent', related_name='groups')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'Группа'
        verbose_name_plural = 'Группы'
        ordering = ['title']

    def __str__(self):
        return self.title


class GroupStudent(models.Model):
    """Ученик в группе."""

    group = models.ForeignKey(Group, on_delete=models.CASCADE, related_name='memberships')
    student = models.ForeignKey(Student, on_delete=models.CASCADE, related_name='memberships')
    is_active = models.BooleanField(default=True)
    joined_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = 'Ученик в группе'
        verbose_name_plural = 'Ученики в группах'
        unique_together = ['group', 'student']

    def __str__(self):
        return f"{self.student.full_name} — {self.group.title}"


class Lesson(models.Model):
    """
    Занятие: одна дата группы.

    Не удаляется, только отменяется. Уникальность (group, lesson_date)
    обеспечивается базой, на ней держится идемпотентность генерации.
    Поля *_by хранят id пользователя Django или отрицательный telegram_id,
    если автор известен только по Telegram.
    """

    class Status(models.TextChoices):
        SCHEDULED = 'scheduled', 'Запланировано'
        DONE = 'done', 'Проведено'
        CANCELED = 'canceled', 'Отменено'

    public_id = models.CharField(max_length=16, unique=True, default=generate_lesson_public_id)
    group = models.ForeignKey(Group, on_delete=models.PROTECT, related_name='lessons')
    lesson_date = models.DateField(db_index=True)
    start_datetime = models.DateTimeField()
    end_datetime = models.DateTimeField()
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.SCHEDULED)

    topic = models.TextField(null=True, blank=True)
    notes = models.TextField(null=True, blank=True)
    topic_set_by = models.BigIntegerField(null=True, blank=True)
    topic_set_at = models.DateTimeField(null=True, blank=True)
    notes_set_by = models.BigIntegerField(null=True, blank=True)
    notes_set_at = models.DateTimeField(null=True, blank=True)
    reported_by = models.BigIntegerField(null=True, blank=True)
    reported_at = models.DateTimeField(null=True, blank=True)
    reported_via = models.CharField(max_length=20, choices=Channel.choices, blank=True, default='')

    created_by = models.BigIntegerField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'Занятие'
        verbose_name_plural = 'Занятия'
        ordering = ['lesson_date', 'start_datetime']
        constraints = [
            models.UniqueConstraint(fields=['group', 'lesson_date'], name='unique_lesson_per_group_date'),
        ]

    def __str__(self):
        return f"{self.group.title} - {self.lesson_date.strftime('%d.%m.%Y')}"


class TeacherReplacement(models.Model):
    """Замена преподавателя на конкретное занятие (не больше одной на занятие)."""

    lesson = models.OneToOneField(Lesson, on_delete=models.CASCADE, related_name='replacement')
    original_teacher = models.ForeignKey(
        Teacher, on_delete=models.PROTECT, related_name='replaced_lessons'
    )
    replacement_teacher = models.ForeignKey(
        Teacher, on_delete=models.PROTECT, related_name='replacement_lessons'
    )
    replaced_by = models.BigIntegerField(null=True, blank=True)
    reason = models.CharField(max_length=500, blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'Замена преподавателя'
        verbose_name_plural = 'Замены преподавателей'

    def __str__(self):
        return f"{self.lesson}: {self.replacement_teacher.name}"


class Attendance(models.Model):
    """Посещаемость ученика на занятии."""

    class Status(models.TextChoices):
        PRESENT = 'present', 'Присутствовал'
        ABSENT = 'absent', 'Отсутствовал'
        MAKEUP_PLANNED = 'makeup_planned', 'Отработка запланирована'
        MAKEUP_DONE = 'makeup_done', 'Отработка проведена'

    lesson = models.ForeignKey(Lesson, on_delete=models.CASCADE, related_name='attendance')
    student = models.ForeignKey(Student, on_delete=models.CASCADE, related_name='attendance')
    status = models.CharField(max_length=20, choices=Status.choices)
    updated_by = models.BigIntegerField(null=True, blank=True)
    updated_at = models.DateTimeField(default=timezone.now)

    class Meta:
        verbose_name = 'Посещаемость'
        verbose_name_plural = 'Посещаемость'
        constraints = [
            models.UniqueConstraint(fields=['lesson', 'student'], name='unique_attendance_per_lesson_student'),
        ]

    def __str__(self):
        return f"{self.student.full_name} - {self.lesson}: {self.status}"


class AppendOnlyQuerySet(models.QuerySet):

    def update(self, **kwargs):
        raise TypeError('Журнал изменений нельзя редактировать')

    def delete(self):
        raise TypeError('Журнал изменений нельзя удалять')


class LessonChangeLog(models.Model):
    """Журнал изменений занятия. Только добавление."""

    lesson = models.ForeignKey(Lesson, on_delete=models.PROTECT, related_name='change_logs')
    field_name = models.CharField(max_length=64)
    old_value = models.TextField(null=True, blank=True)
    new_value = models.TextField(null=True, blank=True)
    changed_by = models.BigIntegerField(null=True, blank=True)
    changed_by_name = models.CharField(max_length=255)
    changed_by_external_id = models.CharField(max_length=32, blank=True, default='')
    changed_via = models.CharField(max_length=20, choices=Channel.choices)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = AppendOnlyQuerySet.as_manager()

    class Meta:
        verbose_name = 'Изменение занятия'
        verbose_name_plural = 'Журнал изменений занятий'
        ordering = ['created_at', 'id']

    def __str__(self):
        return f"{self.lesson_id}.{self.field_name}: {self.old_value} → {self.new_value}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise TypeError('Журнал изменений нельзя редактировать')
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise TypeError('Журнал изменений нельзя удалять')
