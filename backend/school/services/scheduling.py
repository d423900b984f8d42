"""
Генерация занятий по недельному расписанию группы.

Идемпотентность держится на уникальном индексе (group, lesson_date):
каждая дата вставляется в своём savepoint, конфликт считается пропуском
и существующее занятие не трогается (тема/нотатки/статус переживают
повторную генерацию).
"""
import calendar
import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone as dt_timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from django.db import IntegrityError, transaction
from django.utils import timezone

from school.exceptions import Conflict, NotFound, ValidationError
from school.models import Group, Lesson

logger = logging.getLogger(__name__)

MAX_WEEKS_AHEAD = 104
MAX_MONTHS_AHEAD = 12
MAX_DURATION_MINUTES = 480

DATE_RE = re.compile(r'^\d{4}-\d{2}-\d{2}$')
TIME_RE = re.compile(r'^([01]?[0-9]|2[0-3]):[0-5][0-9]$')


@dataclass(frozen=True)
class GenerationResult:
    generated: int
    skipped: int


@dataclass(frozen=True)
class GroupGenerationResult:
    group_id: int
    generated: int = 0
    skipped: int = 0
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _zone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValidationError(f'Невідомий часовий пояс: {name}')


def _validate_group(group: Group) -> None:
    if not 1 <= group.weekly_day <= 7:
        raise ValidationError(f'Невірний день тижня для групи: {group.weekly_day}')
    if not 1 <= group.duration_minutes <= MAX_DURATION_MINUTES:
        raise ValidationError('Тривалість повинна бути числом від 1 до 480 хвилин')
    if group.start_time is None:
        raise ValidationError('Не вказано час початку групи')
    _zone(group.timezone)


def lesson_bounds(lesson_date: date, start_time: time, duration_minutes: int, tz_name: str) -> tuple[datetime, datetime]:
    """Начало и конец занятия в UTC. Конец ровно через duration_minutes реального времени."""
    local_start = datetime.combine(lesson_date, start_time, tzinfo=_zone(tz_name))
    start = local_start.astimezone(dt_timezone.utc)
    return start, start + timedelta(minutes=duration_minutes)


def first_weekday_on_or_after(start: date, weekly_day: int) -> date:
    return start + timedelta(days=(weekly_day - start.isoweekday()) % 7)


def occurrence_dates(group: Group, *, start: date, end: date | None = None, count: int | None = None) -> list[date]:
    """
    Даты занятий группы начиная с start.

    Ровно count недель, либо все даты до end включительно.
    Даты после end_date группы и до start_date группы отбрасываются.
    """
    start = max(start, group.start_date) if group.start_date else start
    current = first_weekday_on_or_after(start, group.weekly_day)

    dates = []
    week = 0
    while True:
        if count is not None and week >= count:
            break
        if end is not None and current > end:
            break
        if group.end_date and current > group.end_date:
            break
        dates.append(current)
        current += timedelta(days=7)
        week += 1
    return dates


def month_window(today: date, months_ahead: int) -> tuple[date, date]:
    """[1-е число текущего месяца, последний день месяца через months_ahead]."""
    month_index = today.month - 1 + months_ahead
    year = today.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return today.replace(day=1), date(year, month, last_day)


def _insert_lesson(group: Group, lesson_date: date, actor_id: int | None) -> bool:
    """False, если занятие на эту дату уже есть."""
    start, end = lesson_bounds(lesson_date, group.start_time, group.duration_minutes, group.timezone)
    try:
        with transaction.atomic():
            Lesson.objects.create(
                group=group,
                lesson_date=lesson_date,
                start_datetime=start,
                end_datetime=end,
                status=Lesson.Status.SCHEDULED,
                created_by=actor_id,
            )
    except IntegrityError:
        if Lesson.objects.filter(group=group, lesson_date=lesson_date).exists():
            return False
        raise
    return True


def _materialize(group: Group, dates: list[date], actor_id: int | None) -> GenerationResult:
    existing = set(
        Lesson.objects.filter(group=group, lesson_date__in=dates).values_list('lesson_date', flat=True)
    )

    generated = 0
    skipped = 0
    for lesson_date in dates:
        if lesson_date in existing or not _insert_lesson(group, lesson_date, actor_id):
            skipped += 1
        else:
            generated += 1

    return GenerationResult(generated=generated, skipped=skipped)


def _get_group(group_id: int) -> Group:
    try:
        return Group.objects.get(pk=group_id, is_deleted=False)
    except Group.DoesNotExist:
        raise NotFound('Групу не знайдено')


def generate_for_group(group_id: int, weeks_ahead: int = 8, actor_id: int | None = None,
                       *, today: date | None = None) -> GenerationResult:
    """
    Создаёт занятия группы на weeks_ahead недель вперёд.

    Отсчёт от более поздней из дат: сегодня или start_date группы.
    """
    if not isinstance(weeks_ahead, int) or not 1 <= weeks_ahead <= MAX_WEEKS_AHEAD:
        raise ValidationError(f'weeks_ahead має бути від 1 до {MAX_WEEKS_AHEAD}')

    group = _get_group(group_id)
    _validate_group(group)

    today = today or timezone.localdate()
    dates = occurrence_dates(group, start=today, count=weeks_ahead)
    result = _materialize(group, dates, actor_id)

    logger.info(
        f"Группа {group.pk} ({group.title}): создано {result.generated}, пропущено {result.skipped}"
    )
    return result


def _generate_for_month_window(group: Group, months_ahead: int, actor_id: int | None, today: date) -> GenerationResult:
    _validate_group(group)
    window_start, window_end = month_window(today, months_ahead)
    dates = occurrence_dates(group, start=window_start, end=window_end)
    return _materialize(group, dates, actor_id)


def generate_for_all(weeks_ahead: int = 8, actor_id: int | None = None, months_ahead: int | None = None,
                     *, today: date | None = None) -> list[GroupGenerationResult]:
    """
    Генерация для всех активных групп.

    Ошибка одной группы логируется и попадает в результат,
    остальные группы обрабатываются дальше.
    """
    if months_ahead is not None and not 0 <= months_ahead <= MAX_MONTHS_AHEAD:
        raise ValidationError(f'months_ahead має бути від 0 до {MAX_MONTHS_AHEAD}')

    today = today or timezone.localdate()
    groups = Group.objects.filter(status=Group.Status.ACTIVE, is_deleted=False).order_by('pk')

    results = []
    for group in groups:
        try:
            if months_ahead is None:
                result = generate_for_group(group.pk, weeks_ahead, actor_id, today=today)
            else:
                result = _generate_for_month_window(group, months_ahead, actor_id, today)
        except Exception as e:
            logger.exception(f"Ошибка генерации занятий для группы {group.pk}: {e}")
            results.append(GroupGenerationResult(group_id=group.pk, error=str(e)))
            continue

        results.append(GroupGenerationResult(
            group_id=group.pk, generated=result.generated, skipped=result.skipped
        ))

    total_generated = sum(r.generated for r in results)
    failed = sum(1 for r in results if not r.ok)
    logger.info(f"Генерация по всем группам: групп {len(results)}, создано {total_generated}, с ошибками {failed}")
    return results


def _parse_date(value) -> date:
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not DATE_RE.match(value):
        raise ValidationError('Некоректна дата')
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise ValidationError('Некоректна дата')


def _parse_time(value) -> time:
    if isinstance(value, time):
        return value
    if not isinstance(value, str) or not TIME_RE.match(value):
        raise ValidationError('Некоректний час')
    hours, minutes = value.split(':')
    return time(int(hours), int(minutes))


def create_single_lesson(group_id: int, lesson_date, start_time, duration_minutes: int,
                         actor_id: int | None = None) -> Lesson:
    """Разовое занятие вне недельного расписания."""
    lesson_date = _parse_date(lesson_date)
    start_time = _parse_time(start_time)
    if isinstance(duration_minutes, bool) or not isinstance(duration_minutes, int) \
            or not 1 <= duration_minutes <= MAX_DURATION_MINUTES:
        raise ValidationError('Тривалість повинна бути числом від 1 до 480 хвилин')

    group = _get_group(group_id)
    start, end = lesson_bounds(lesson_date, start_time, duration_minutes, group.timezone)

    try:
        with transaction.atomic():
            lesson = Lesson.objects.create(
                group=group,
                lesson_date=lesson_date,
                start_datetime=start,
                end_datetime=end,
                status=Lesson.Status.SCHEDULED,
                created_by=actor_id,
            )
    except IntegrityError:
        if Lesson.objects.filter(group=group, lesson_date=lesson_date).exists():
            raise Conflict()
        raise

    logger.info(f"Создано разовое занятие {lesson.public_id} для группы {group.pk} на {lesson_date}")
    return lesson
