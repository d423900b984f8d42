import json
import logging

from django.http import JsonResponse
from django.utils import timezone
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_http_methods, require_POST

from .exceptions import AuthInvalid, Forbidden, SchoolError, ValidationError
from .models import Attendance, Lesson, Teacher
from .services.attendance import set_attendance
from .services.audit import Actor
from .services.lifecycle import UNSET, LessonPatch, apply_patch
from .services.reminders import lesson_students, send_reminders
from .services.replacements import effective_teacher_for, ensure_lesson_access, replace_teacher
from .services.scheduling import create_single_lesson, generate_for_all, generate_for_group
from .services.telegram import TelegramAuthService

logger = logging.getLogger(__name__)

INIT_DATA_HEADER = 'X-Telegram-Init-Data'


# ===========================================
# Health Check
# ===========================================

def health_check(request):
    """Проверка работоспособности сервера."""
    return JsonResponse({'status': 'ok', 'timestamp': timezone.now().isoformat()})


# ===========================================
# Admin API (сессия Django, только staff)
# ===========================================

@csrf_exempt
@require_POST
def generate_group_lessons(request, group_id):
    """Генерация занятий одной группы на N недель вперёд."""
    user = _get_admin(request)
    if not user:
        return _forbidden(request)

    data = _parse_json(request)
    if data is None:
        return JsonResponse({'error': 'Invalid JSON'}, status=400)

    try:
        result = generate_for_group(
            group_id,
            weeks_ahead=_int_field(data, 'weeks_ahead', default=8),
            actor_id=user.pk,
        )
    except SchoolError as e:
        return _error(e)

    return JsonResponse({'generated': result.generated, 'skipped': result.skipped})


@csrf_exempt
@require_POST
def generate_all_lessons(request):
    """Генерация по всем активным группам. Ошибка одной группы не останавливает остальные."""
    user = _get_admin(request)
    if not user:
        return _forbidden(request)

    data = _parse_json(request)
    if data is None:
        return JsonResponse({'error': 'Invalid JSON'}, status=400)

    try:
        results = generate_for_all(
            weeks_ahead=_int_field(data, 'weeks_ahead', default=8),
            actor_id=user.pk,
            months_ahead=_int_field(data, 'months_ahead', default=None),
        )
    except SchoolError as e:
        return _error(e)

    return JsonResponse({
        'results': [
            {'group_id': r.group_id, 'generated': r.generated, 'skipped': r.skipped, 'error': r.error}
            for r in results
        ],
        'total_generated': sum(r.generated for r in results),
        'total_skipped': sum(r.skipped for r in results),
    })


@csrf_exempt
@require_POST
def create_lesson(request):
    """Разовое занятие."""
    user = _get_admin(request)
    if not user:
        return _forbidden(request)

    data = _parse_json(request)
    if data is None:
        return JsonResponse({'error': 'Invalid JSON'}, status=400)

    try:
        lesson = create_single_lesson(
            group_id=_int_field(data, 'group_id'),
            lesson_date=data.get('lesson_date'),
            start_time=data.get('start_time'),
            duration_minutes=_int_field(data, 'duration_minutes'),
            actor_id=user.pk,
        )
    except SchoolError as e:
        return _error(e)

    return JsonResponse({'lesson': _lesson_payload(lesson)}, status=201)


@csrf_exempt
@require_http_methods(['PATCH'])
def admin_lesson(request, lesson_id):
    """Правка темы/нотаток/статуса из админки."""
    user = _get_admin(request)
    if not user:
        return _forbidden(request)

    data = _parse_json(request)
    if data is None:
        return JsonResponse({'error': 'Invalid JSON'}, status=400)

    try:
        lesson = apply_patch(lesson_id, _patch_from(data), Actor.admin(user))
    except SchoolError as e:
        return _error(e)

    return JsonResponse({'message': 'Заняття оновлено', 'lesson': _lesson_payload(lesson)})


@csrf_exempt
@require_POST
def admin_attendance(request, lesson_id):
    """Отметка посещаемости из админки. Прошедшие занятия тоже можно."""
    user = _get_admin(request)
    if not user:
        return _forbidden(request)

    data = _parse_json(request)
    if data is None:
        return JsonResponse({'error': 'Invalid JSON'}, status=400)

    try:
        result = set_attendance(
            lesson_id, _int_field(data, 'student_id'), data.get('status'), Actor.admin(user)
        )
    except SchoolError as e:
        return _error(e)

    return JsonResponse({'status': result.status, 'lesson_status': result.lesson_status})


@csrf_exempt
@require_POST
def admin_replace_teacher(request, lesson_id):
    """Замена преподавателя на занятие."""
    user = _get_admin(request)
    if not user:
        return _forbidden(request)

    data = _parse_json(request)
    if data is None:
        return JsonResponse({'error': 'Invalid JSON'}, status=400)

    try:
        replacement = replace_teacher(
            lesson_id,
            _int_field(data, 'replacement_teacher_id'),
            Actor.admin(user),
            reason=data.get('reason') or '',
        )
    except SchoolError as e:
        return _error(e)

    return JsonResponse({
        'lesson_id': replacement.lesson_id,
        'replacement_teacher_id': replacement.replacement_teacher_id,
        'original_teacher_id': replacement.original_teacher_id,
    })


@csrf_exempt
@require_POST
def admin_send_reminders(request):
    """Напоминания преподавателям по выбранным занятиям."""
    user = _get_admin(request)
    if not user:
        return _forbidden(request)

    data = _parse_json(request)
    if data is None:
        return JsonResponse({'error': 'Invalid JSON'}, status=400)

    lesson_ids = data.get('lesson_ids')
    if not isinstance(lesson_ids, list) or not lesson_ids or \
            not all(isinstance(i, int) and not isinstance(i, bool) for i in lesson_ids):
        return JsonResponse({'error': 'Потрібно обрати хоча б одне заняття'}, status=400)

    report = send_reminders(lesson_ids)
    return JsonResponse({
        'sent': report.sent,
        'skipped': report.skipped,
        'summary': {
            'total': len(lesson_ids),
            'sent_count': len(report.sent),
            'skipped_count': len(report.skipped),
        },
    })


# ===========================================
# Teacher Mini App API (Telegram initData)
# ===========================================

@csrf_exempt
@require_POST
def teacher_app_auth(request):
    """Авторизация преподавателя через Telegram initData."""
    data = _parse_json(request)
    if data is None:
        return JsonResponse({'error': 'Invalid JSON'}, status=400)

    try:
        teacher, _ = _get_teacher(request, data)
    except SchoolError as e:
        return _error(e)

    return JsonResponse({
        'status': 'authorized',
        'teacher': {'id': teacher.pk, 'name': teacher.name},
    })


@require_GET
def teacher_app_schedule(request):
    """Ближайшие занятия, где преподаватель фактический (с учётом замен)."""
    try:
        teacher, _ = _get_teacher(request)
    except SchoolError as e:
        return _error(e)

    lessons = (
        Lesson.objects
        .filter(lesson_date__gte=timezone.localdate())
        .exclude(status=Lesson.Status.CANCELED)
        .select_related('group__teacher', 'replacement__replacement_teacher')
        .order_by('lesson_date', 'start_datetime')
    )
    own = [lesson for lesson in lessons[:500] if effective_teacher_for(lesson).pk == teacher.pk]

    return JsonResponse({'lessons': [_lesson_payload(lesson) for lesson in own[:50]]})


@csrf_exempt
@require_http_methods(['GET', 'PATCH'])
def teacher_app_lesson(request, lesson_id):
    """GET: занятие с учениками и отметками. PATCH: тема, нотатки или статус."""
    data = None
    if request.method == 'PATCH':
        data = _parse_json(request)
        if data is None:
            return JsonResponse({'error': 'Invalid JSON'}, status=400)

    try:
        teacher, verification = _get_teacher(request, data)
        lesson = ensure_lesson_access(lesson_id, teacher=teacher)
    except SchoolError as e:
        return _error(e)

    if request.method == 'GET':
        marks = dict(Attendance.objects.filter(lesson=lesson).values_list('student_id', 'status'))
        students = [
            {'id': s.pk, 'full_name': s.full_name, 'attendance_status': marks.get(s.pk)}
            for s in lesson_students(lesson)
        ]
        return JsonResponse({'lesson': _lesson_payload(lesson), 'students': students})

    actor = Actor.telegram(teacher, TelegramAuthService.extract_user_data(verification))
    try:
        lesson = apply_patch(lesson_id, _patch_from(data), actor)
    except SchoolError as e:
        return _error(e)

    return JsonResponse({'lesson': _lesson_payload(lesson)})


@csrf_exempt
@require_POST
def teacher_app_attendance(request, lesson_id):
    """Отметка посещаемости из Mini App."""
    data = _parse_json(request)
    if data is None:
        return JsonResponse({'error': 'Invalid JSON'}, status=400)

    try:
        teacher, verification = _get_teacher(request, data)
        ensure_lesson_access(lesson_id, teacher=teacher)
        actor = Actor.telegram(teacher, TelegramAuthService.extract_user_data(verification))
        result = set_attendance(lesson_id, _int_field(data, 'student_id'), data.get('status'), actor)
    except SchoolError as e:
        return _error(e)

    return JsonResponse({
        'success': True,
        'status': result.status,
        'lesson_status': result.lesson_status,
    })


# ===========================================
# Helpers
# ===========================================

def _parse_json(request) -> dict | None:
    if not request.body:
        return {}
    try:
        data = json.loads(request.body)
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None


def _int_field(data: dict, name: str, default=UNSET):
    value = data.get(name, default)
    if value is UNSET:
        raise ValidationError(f"Відсутнє обов'язкове поле: {name}")
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValidationError(f'Поле {name} має бути числом')
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f'Поле {name} має бути числом')


def _patch_from(data: dict) -> LessonPatch:
    return LessonPatch(
        topic=data.get('topic', UNSET),
        notes=data.get('notes', UNSET),
        status=data.get('status', UNSET),
    )


def _error(exc: SchoolError) -> JsonResponse:
    return JsonResponse({'error': exc.message}, status=exc.status_code)


def _forbidden(request) -> JsonResponse:
    if not request.user.is_authenticated:
        return JsonResponse({'error': 'Not authorized'}, status=401)
    return _error(Forbidden())


def _get_admin(request):
    """Администратор: staff-пользователь Django."""
    user = request.user
    if user.is_authenticated and user.is_staff:
        return user
    return None


def _get_teacher(request, data: dict | None = None):
    """Преподаватель по initData из заголовка (или поля init_data в теле)."""
    init_data = request.headers.get(INIT_DATA_HEADER, '')
    if not init_data and data:
        init_data = data.get('init_data', '')

    verification = TelegramAuthService.authenticate(init_data)

    teacher = Teacher.objects.filter(telegram_id=verification.telegram_id, is_active=True).first()
    if not teacher:
        logger.warning(f"initData валиден, но преподаватель с telegram_id={verification.telegram_id} не найден")
        raise AuthInvalid('Teacher not found')
    return teacher, verification


def _lesson_payload(lesson: Lesson) -> dict:
    teacher = effective_teacher_for(lesson)
    return {
        'id': lesson.pk,
        'public_id': lesson.public_id,
        'group_id': lesson.group_id,
        'group_title': lesson.group.title,
        'lesson_date': lesson.lesson_date.isoformat(),
        'start_datetime': lesson.start_datetime.isoformat(),
        'end_datetime': lesson.end_datetime.isoformat(),
        'status': lesson.status,
        'topic': lesson.topic,
        'notes': lesson.notes,
        'teacher_id': teacher.pk,
        'teacher_name': teacher.name,
        'is_replaced': teacher.pk != lesson.group.teacher_id,
        'reported_via': lesson.reported_via or None,
        'reported_at': lesson.reported_at.isoformat() if lesson.reported_at else None,
    }
