import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models

import school.models


CHANNEL_CHOICES = [('admin', 'Админка'), ('telegram', 'Telegram')]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Teacher',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=255)),
                ('telegram_id', models.CharField(blank=True, db_index=True, max_length=32, null=True, unique=True)),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('user', models.OneToOneField(
                    blank=True, null=True,
                    on_delete=django.db.models.deletion.SET_NULL,
                    related_name='teacher_profile',
                    to=settings.AUTH_USER_MODEL,
                )),
            ],
            options={
                'verbose_name': 'Преподаватель',
                'verbose_name_plural': 'Преподаватели',
                'ordering': ['name'],
            },
        ),
        migrations.CreateModel(
            name='Student',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('full_name', models.CharField(max_length=255)),
                ('phone', models.CharField(blank=True, default='', max_length=32)),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
            ],
            options={
                'verbose_name': 'Ученик',
                'verbose_name_plural': 'Ученики',
                'ordering': ['full_name'],
            },
        ),
        migrations.CreateModel(
            name='Group',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('title', models.CharField(max_length=255)),
                ('weekly_day', models.PositiveSmallIntegerField(
                    validators=[
                        django.core.validators.MinValueValidator(1),
                        django.core.validators.MaxValueValidator(7),
                    ],
                    verbose_name='День недели',
                )),
                ('start_time', models.TimeField(verbose_name='Время начала')),
                ('duration_minutes', models.PositiveIntegerField(
                    default=90,
                    validators=[
                        django.core.validators.MinValueValidator(1),
                        django.core.validators.MaxValueValidator(480),
                    ],
                    verbose_name='Длительность (мин)',
                )),
                ('timezone', models.CharField(default=school.models.default_group_timezone, max_length=64)),
                ('start_date', models.DateField()),
                ('end_date', models.DateField(blank=True, null=True)),
                ('status', models.CharField(
                    choices=[('active', 'Активна'), ('inactive', 'Неактивна')],
                    default='active',
                    max_length=20,
                )),
                ('is_deleted', models.BooleanField(default=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('teacher', models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT, related_name='groups', to='school.teacher',
                )),
            ],
            options={
                'verbose_name': 'Группа',
                'verbose_name_plural': 'Группы',
                'ordering': ['title'],
            },
        ),
        migrations.CreateModel(
            name='GroupStudent',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('is_active', models.BooleanField(default=True)),
                ('joined_at', models.DateTimeField(auto_now_add=True)),
                ('group', models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE, related_name='memberships', to='school.group',
                )),
                ('student', models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE, related_name='memberships', to='school.student',
                )),
            ],
            options={
                'verbose_name': 'Ученик в группе',
                'verbose_name_plural': 'Ученики в группах',
                'unique_together': {('group', 'student')},
            },
        ),
        migrations.AddField(
            model_name='group',
            name='students',
            field=models.ManyToManyField(related_name='groups', through='school.GroupStudent', to='school.student'),
        ),
        migrations.CreateModel(
            name='Lesson',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('public_id', models.CharField(default=school.models.generate_lesson_public_id, max_length=16, unique=True)),
                ('lesson_date', models.DateField(db_index=True)),
                ('start_datetime', models.DateTimeField()),
                ('end_datetime', models.DateTimeField()),
                ('status', models.CharField(
                    choices=[('scheduled', 'Запланировано'), ('done', 'Проведено'), ('canceled', 'Отменено')],
                    default='scheduled',
                    max_length=20,
                )),
                ('topic', models.TextField(blank=True, null=True)),
                ('notes', models.TextField(blank=True, null=True)),
                ('topic_set_by', models.BigIntegerField(blank=True, null=True)),
                ('topic_set_at', models.DateTimeField(blank=True, null=True)),
                ('notes_set_by', models.BigIntegerField(blank=True, null=True)),
                ('notes_set_at', models.DateTimeField(blank=True, null=True)),
                ('reported_by', models.BigIntegerField(blank=True, null=True)),
                ('reported_at', models.DateTimeField(blank=True, null=True)),
                ('reported_via', models.CharField(blank=True, choices=CHANNEL_CHOICES, default='', max_length=20)),
                ('created_by', models.BigIntegerField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('group', models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT, related_name='lessons', to='school.group',
                )),
            ],
            options={
                'verbose_name': 'Занятие',
                'verbose_name_plural': 'Занятия',
                'ordering': ['lesson_date', 'start_datetime'],
            },
        ),
        migrations.AddConstraint(
            model_name='lesson',
            constraint=models.UniqueConstraint(fields=('group', 'lesson_date'), name='unique_lesson_per_group_date'),
        ),
        migrations.CreateModel(
            name='TeacherReplacement',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('replaced_by', models.BigIntegerField(blank=True, null=True)),
                ('reason', models.CharField(blank=True, default='', max_length=500)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('lesson', models.OneToOneField(
                    on_delete=django.db.models.deletion.CASCADE, related_name='replacement', to='school.lesson',
                )),
                ('original_teacher', models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT, related_name='replaced_lessons', to='school.teacher',
                )),
                ('replacement_teacher', models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT, related_name='replacement_lessons', to='school.teacher',
                )),
            ],
            options={
                'verbose_name': 'Замена преподавателя',
                'verbose_name_plural': 'Замены преподавателей',
            },
        ),
        migrations.CreateModel(
            name='Attendance',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('status', models.CharField(
                    choices=[
                        ('present', 'Присутствовал'),
                        ('absent', 'Отсутствовал'),
                        ('makeup_planned', 'Отработка запланирована'),
                        ('makeup_done', 'Отработка проведена'),
                    ],
                    max_length=20,
                )),
                ('updated_by', models.BigIntegerField(blank=True, null=True)),
                ('updated_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('lesson', models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE, related_name='attendance', to='school.lesson',
                )),
                ('student', models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE, related_name='attendance', to='school.student',
                )),
            ],
            options={
                'verbose_name': 'Посещаемость',
                'verbose_name_plural': 'Посещаемость',
            },
        ),
        migrations.AddConstraint(
            model_name='attendance',
            constraint=models.UniqueConstraint(fields=('lesson', 'student'), name='unique_attendance_per_lesson_student'),
        ),
        migrations.CreateModel(
            name='LessonChangeLog',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('field_name', models.CharField(max_length=64)),
                ('old_value', models.TextField(blank=True, null=True)),
                ('new_value', models.TextField(blank=True, null=True)),
                ('changed_by', models.BigIntegerField(blank=True, null=True)),
                ('changed_by_name', models.CharField(max_length=255)),
                ('changed_by_external_id', models.CharField(blank=True, default='', max_length=32)),
                ('changed_via', models.CharField(choices=CHANNEL_CHOICES, max_length=20)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('lesson', models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT, related_name='change_logs', to='school.lesson',
                )),
            ],
            options={
                'verbose_name': 'Изменение занятия',
                'verbose_name_plural': 'Журнал изменений занятий',
                'ordering': ['created_at', 'id'],
            },
        ),
    ]
