from rest_framework.throttling import UserRateThrottle


class ResponseRateThrottle(UserRateThrottle):
    """Rate limit for answering questions during an attempt."""
    scope = 'response'
