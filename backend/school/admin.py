from django.contrib import admin
from .models import (
    Attendance, Group, GroupStudent, Lesson, LessonChangeLog, Student, Teacher, TeacherReplacement,
)


@admin.register(Teacher)
class TeacherAdmin(admin.ModelAdmin):
    list_display = ['name', 'telegram_id', 'user', 'is_active']
    search_fields = ['name', 'telegram_id']
    list_filter = ['is_active']


@admin.register(Student)
class StudentAdmin(admin.ModelAdmin):
    list_display = ['full_name', 'phone', 'is_active', 'created_at']
    search_fields = ['full_name', 'phone']
    list_filter = ['is_active']


class GroupStudentInline(admin.TabularInline):
    model = GroupStudent
    extra = 0
    fields = ['student', 'is_active']
    autocomplete_fields = ['student']


@admin.register(Group)
class GroupAdmin(admin.ModelAdmin):
    list_display = ['title', 'teacher', 'weekly_day', 'start_time', 'duration_minutes', 'status', 'lesson_count']
    list_filter = ['status', 'is_deleted', 'weekly_day', 'teacher']
    search_fields = ['title']
    inlines = [GroupStudentInline]

    @admin.display(description='Занятий')
    def lesson_count(self, obj):
        return obj.lessons.count()


class AttendanceInline(admin.TabularInline):
    model = Attendance
    extra = 0
    fields = ['student', 'status', 'updated_by', 'updated_at']
    readonly_fields = ['updated_by', 'updated_at']


class LessonChangeLogInline(admin.TabularInline):
    model = LessonChangeLog
    extra = 0
    can_delete = False
    fields = ['field_name', 'old_value', 'new_value', 'changed_by_name', 'changed_via', 'created_at']
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Lesson)
class LessonAdmin(admin.ModelAdmin):
    list_display = ['public_id', 'group', 'lesson_date', 'status', 'topic', 'reported_via']
    list_filter = ['status', 'reported_via', 'group']
    search_fields = ['public_id', 'group__title', 'topic']
    date_hierarchy = 'lesson_date'
    # Статус, тема и нотатки меняются только через сервисы, с журналом
    readonly_fields = [
        'public_id', 'status', 'topic', 'notes',
        'topic_set_by', 'topic_set_at', 'notes_set_by', 'notes_set_at',
        'reported_by', 'reported_at', 'reported_via', 'created_by',
    ]
    inlines = [AttendanceInline, LessonChangeLogInline]


@admin.register(TeacherReplacement)
class TeacherReplacementAdmin(admin.ModelAdmin):
    list_display = ['lesson', 'original_teacher', 'replacement_teacher', 'created_at']
    list_filter = ['replacement_teacher']
    readonly_fields = ['lesson', 'original_teacher', 'replacement_teacher', 'replaced_by', 'reason', 'created_at']

    def has_add_permission(self, request):
        return False


@admin.register(LessonChangeLog)
class LessonChangeLogAdmin(admin.ModelAdmin):
    list_display = ['lesson', 'field_name', 'old_value', 'new_value', 'changed_by_name', 'changed_via', 'created_at']
    list_filter = ['field_name', 'changed_via']
    search_fields = ['lesson__public_id', 'changed_by_name', 'changed_by_external_id']
    readonly_fields = [
        'lesson', 'field_name', 'old_value', 'new_value', 'changed_by',
        'changed_by_name', 'changed_by_external_id', 'changed_via', 'created_at',
    ]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
