from app.core.celery_app import celery_app

# Worker entrypoint: celery -A celery_worker.celery_app worker
__all__ = ["celery_app"]


if __name__ == "__main__":
    celery_app.start()
