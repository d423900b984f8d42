from django.urls import path
from . import views

urlpatterns = [
    # Health
    path('health/', views.health_check, name='health'),

    # Admin API
    path('api/groups/<int:group_id>/generate-lessons/', views.generate_group_lessons, name='generate_group_lessons'),
    path('api/schedule/generate-all/', views.generate_all_lessons, name='generate_all_lessons'),
    path('api/lessons/single/', views.create_lesson, name='create_lesson'),
    path('api/lessons/<int:lesson_id>/', views.admin_lesson, name='admin_lesson'),
    path('api/lessons/<int:lesson_id>/attendance/', views.admin_attendance, name='admin_attendance'),
    path('api/lessons/<int:lesson_id>/replace-teacher/', views.admin_replace_teacher, name='admin_replace_teacher'),
    path('api/notifications/send-reminders/', views.admin_send_reminders, name='admin_send_reminders'),

    # Teacher Mini App (Telegram initData)
    path('teacher-app/auth/', views.teacher_app_auth, name='teacher_app_auth'),
    path('teacher-app/schedule/', views.teacher_app_schedule, name='teacher_app_schedule'),
    path('teacher-app/lessons/<int:lesson_id>/', views.teacher_app_lesson, name='teacher_app_lesson'),
    path('teacher-app/lessons/<int:lesson_id>/attendance/', views.teacher_app_attendance, name='teacher_app_attendance'),
]
