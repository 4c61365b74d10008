import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Quiz',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('title', models.CharField(max_length=300)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='created_quizzes', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name_plural': 'quizzes',
                'ordering': ['-created_at'],
                'permissions': [('edit_any_quiz', 'Can edit any quiz')],
            },
        ),
        migrations.CreateModel(
            name='QuizVersion',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('number', models.PositiveIntegerField(default=1)),
                ('randomization', models.IntegerField(choices=[(0, 'No randomization'), (1, 'Random order'), (2, 'Random questions'), (3, 'Categorized random questions')], default=0)),
                ('max_score', models.PositiveIntegerField(default=0)),
                ('log', models.TextField(blank=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
                ('quiz', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='versions', to='quiz_question.quiz')),
            ],
            options={
                'ordering': ['quiz', 'number'],
            },
        ),
        migrations.AddConstraint(
            model_name='quizversion',
            constraint=models.UniqueConstraint(fields=('quiz', 'number'), name='unique_quiz_version_number'),
        ),
        migrations.CreateModel(
            name='Question',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('question_type', models.CharField(db_index=True, max_length=50)),
                ('title', models.CharField(max_length=300)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='created_questions', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['-created_at'],
                'permissions': [
                    ('view_any_correct_response', 'Can view any quiz question correct response'),
                    ('manual_quiz_revisioning', 'Can choose quiz revision actions manually'),
                    ('score_any_response', 'Can score any quiz question response'),
                ],
            },
        ),
        migrations.CreateModel(
            name='QuestionVersion',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('number', models.PositiveIntegerField(default=1)),
                ('body', models.TextField(blank=True)),
                ('title_override', models.CharField(blank=True, max_length=300)),
                ('type_data', models.JSONField(blank=True, default=dict)),
                ('log', models.TextField(blank=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
                ('question', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='versions', to='quiz_question.question')),
            ],
            options={
                'ordering': ['question', 'number'],
            },
        ),
        migrations.AddConstraint(
            model_name='questionversion',
            constraint=models.UniqueConstraint(fields=('question', 'number'), name='unique_question_version_number'),
        ),
        migrations.CreateModel(
            name='QuestionProperties',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('max_score', models.PositiveIntegerField(default=0)),
                ('question', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='properties', to='quiz_question.question')),
                ('question_version', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='properties', to='quiz_question.questionversion')),
            ],
            options={
                'verbose_name_plural': 'question properties',
            },
        ),
        migrations.CreateModel(
            name='QuizQuestionRelation',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('question_status', models.IntegerField(choices=[(0, 'Random'), (1, 'Always')], default=1)),
                ('weight', models.IntegerField(default=0)),
                ('max_score', models.PositiveIntegerField(default=0)),
                ('child_version', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='memberships', to='quiz_question.questionversion')),
                ('parent_version', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='relations', to='quiz_question.quizversion')),
            ],
            options={
                'ordering': ['parent_version', 'weight', 'id'],
            },
        ),
        migrations.AddConstraint(
            model_name='quizquestionrelation',
            constraint=models.UniqueConstraint(fields=('parent_version', 'child_version'), name='unique_quiz_question_relation'),
        ),
        migrations.CreateModel(
            name='Attempt',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('status', models.CharField(choices=[('in_progress', 'In Progress'), ('finished', 'Finished')], db_index=True, default='in_progress', max_length=20)),
                ('started_at', models.DateTimeField(auto_now_add=True)),
                ('finished_at', models.DateTimeField(blank=True, null=True)),
                ('score', models.PositiveIntegerField(blank=True, null=True)),
                ('is_evaluated', models.BooleanField(default=False)),
                ('quiz_version', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='attempts', to='quiz_question.quizversion')),
                ('taker', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='quiz_attempts', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['-started_at'],
            },
        ),
        migrations.AddIndex(
            model_name='attempt',
            index=models.Index(fields=['taker', 'quiz_version'], name='qq_attempt_taker_idx'),
        ),
        migrations.AddIndex(
            model_name='attempt',
            index=models.Index(fields=['quiz_version', 'status'], name='qq_attempt_status_idx'),
        ),
        migrations.CreateModel(
            name='QuestionResponse',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('answer', models.JSONField(blank=True, null=True)),
                ('is_skipped', models.BooleanField(default=False)),
                ('is_evaluated', models.BooleanField(default=True)),
                ('is_correct', models.BooleanField(null=True)),
                ('raw_score', models.IntegerField(blank=True, null=True)),
                ('points_awarded', models.PositiveIntegerField(default=0)),
                ('answered_at', models.DateTimeField(auto_now=True)),
                ('attempt', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='responses', to='quiz_question.attempt')),
                ('question_version', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='responses', to='quiz_question.questionversion')),
            ],
            options={
                'ordering': ['attempt', 'id'],
            },
        ),
        migrations.AddConstraint(
            model_name='questionresponse',
            constraint=models.UniqueConstraint(fields=('attempt', 'question_version'), name='unique_attempt_question_version'),
        ),
        migrations.CreateModel(
            name='AuditLog',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('event_type', models.CharField(choices=[('question_saved', 'Question Saved'), ('question_deleted', 'Question Deleted'), ('quiz_revised', 'Quiz Revised'), ('membership_changed', 'Quiz Membership Changed'), ('quiz_retargeted', 'Quiz Moved To New Question Version'), ('response_scored', 'Response Scored Manually')], db_index=True, max_length=30)),
                ('description', models.TextField()),
                ('ip_address', models.GenericIPAddressField(blank=True, null=True)),
                ('metadata', models.JSONField(blank=True, default=dict)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('user', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='quiz_audit_logs', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['-created_at'],
            },
        ),
        migrations.AddIndex(
            model_name='auditlog',
            index=models.Index(fields=['user', 'event_type'], name='qq_audit_user_event_idx'),
        ),
    ]
