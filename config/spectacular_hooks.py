"""
drf-spectacular hooks for the Quiz Question schema.
"""
from django.conf import settings


def remove_extra_security_schemes(result, generator, request, public):
    """Document token auth only; session auth is detected but not advertised."""
    components = result.get('components', {})
    if 'securitySchemes' in components:
        components['securitySchemes'] = dict(
            settings.SPECTACULAR_SETTINGS['APPEND_COMPONENTS']['securitySchemes']
        )
    return result
