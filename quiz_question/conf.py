from django.conf import settings

DEFAULTS = {
    'AUTO_REVISIONING': True,
    'ANSWERS_ACCESS_CHECKS': [],
    'SIMILARITY_THRESHOLD': 0.7,
    'DEFAULT_SHORT_ANSWER_SCORE': 5,
    'DEFAULT_LONG_ANSWER_SCORE': 10,
    'MAX_SHORT_ANSWER_LENGTH': 500,
}


def get_setting(name):
    return getattr(settings, 'QUIZ_QUESTION', {}).get(name, DEFAULTS[name])
