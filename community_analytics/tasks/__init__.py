"""Background tasks run by the Celery worker."""
