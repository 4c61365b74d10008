"""
Management command to set up demo data for the quiz question framework.
Creates demo users, a quiz and one question of every built-in type.
"""
from django.core.management.base import BaseCommand
from django.contrib.auth.models import Permission, User
from rest_framework.authtoken.models import Token

from quiz_question.models import Quiz
from quiz_question.services import MembershipChanges, NewQuiz, create_question


DEMO_QUIZ_TITLE = 'Python Basics Quiz'


class Command(BaseCommand):
    help = 'Set up demo data for testing'

    def _user(self, username, password, **defaults):
        user, created = User.objects.get_or_create(
            username=username,
            defaults={'email': f'{username}@example.com', 'is_active': True, **defaults}
        )
        if created:
            user.set_password(password)
            user.save()
            self.stdout.write(self.style.SUCCESS(f'✓ Created {username}: {username} / {password}'))
        else:
            self.stdout.write(f'  {username} user already exists')
        token, _ = Token.objects.get_or_create(user=user)
        return user, token

    def handle(self, *args, **options):
        self.stdout.write(self.style.NOTICE('\n🎓 Setting up quiz demo data...\n'))

        student, student_token = self._user('student', 'student123', first_name='Test', last_name='Student')
        author, author_token = self._user('author', 'author123', first_name='Test', last_name='Author')
        grader, grader_token = self._user('grader', 'grader123', first_name='Test', last_name='Grader')
        admin, admin_token = self._user('admin', 'admin123', is_staff=True, is_superuser=True)

        grader.user_permissions.add(*Permission.objects.filter(
            content_type__app_label='quiz_question',
            codename__in=['score_any_response', 'view_any_correct_response'],
        ))

        if Quiz.objects.filter(title=DEMO_QUIZ_TITLE).exists():
            self.stdout.write(f'  Quiz already exists: {DEMO_QUIZ_TITLE}')
        else:
            _, _, result = create_question(
                'multichoice',
                'Type of a list',
                {
                    'choices': [
                        {'text': "<class 'list'>", 'correct': True},
                        {'text': "<class 'tuple'>"},
                        {'text': "<class 'dict'>"},
                        {'text': "<class 'set'>"},
                    ],
                },
                actor=author,
                body='What is the output of print(type([]))?',
                membership_changes=MembershipChanges(create_new=NewQuiz(title=DEMO_QUIZ_TITLE)),
            )
            quiz_version_id = result.created_quiz
            add = MembershipChanges(add_from_candidates=[quiz_version_id])

            create_question(
                'truefalse',
                'Static typing',
                {'correct_answer': False},
                actor=author,
                body='Python is a statically typed programming language.',
                membership_changes=add,
            )
            create_question(
                'short_answer',
                'Python decorators',
                {
                    'correct_answer': 'A decorator is a function that wraps another function to extend its behavior.',
                    'evaluation': 'similarity',
                    'max_score': 3,
                },
                actor=author,
                body='What is a Python decorator? Explain briefly.',
                membership_changes=add,
            )
            create_question(
                'long_answer',
                'Lists and tuples',
                {
                    'rubric': 'Key points: mutability difference, syntax ([] vs ()), use cases, examples',
                    'max_score': 5,
                },
                actor=author,
                body='Compare and contrast Python lists and tuples. Include examples.',
                membership_changes=add,
            )
            self.stdout.write(self.style.SUCCESS(f'✓ Quiz: {DEMO_QUIZ_TITLE} with 4 questions'))

        # Print summary
        self.stdout.write(self.style.SUCCESS('\n' + '='*60))
        self.stdout.write(self.style.SUCCESS('🎉 Demo Setup Complete!'))
        self.stdout.write(self.style.SUCCESS('='*60))

        self.stdout.write('\n📋 Demo Accounts:')
        self.stdout.write('  ┌─────────────┬─────────────┬──────────────┐')
        self.stdout.write('  │ Role        │ Username    │ Password     │')
        self.stdout.write('  ├─────────────┼─────────────┼──────────────┤')
        self.stdout.write('  │ Student     │ student     │ student123   │')
        self.stdout.write('  │ Author      │ author      │ author123    │')
        self.stdout.write('  │ Grader      │ grader      │ grader123    │')
        self.stdout.write('  │ Admin       │ admin       │ admin123     │')
        self.stdout.write('  └─────────────┴─────────────┴──────────────┘')

        self.stdout.write('\n🔑 API Tokens:')
        self.stdout.write(f'  Student: {student_token.key}')
        self.stdout.write(f'  Author:  {author_token.key}')
        self.stdout.write(f'  Grader:  {grader_token.key}')
        self.stdout.write(f'  Admin:   {admin_token.key}')

        self.stdout.write('\n📚 API Documentation:')
        self.stdout.write('  Swagger UI: http://localhost:8000/api/docs/')
        self.stdout.write('  ReDoc:      http://localhost:8000/api/redoc/')

        self.stdout.write('\n🧪 Test API:')
        self.stdout.write(f'  curl -H "Authorization: Token {student_token.key}" http://localhost:8000/api/quizzes/')
        self.stdout.write('')
