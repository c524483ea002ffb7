# Overview: Flask extension instances for database, migrations and background tasks.

from celery import Celery, Task
from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

db = SQLAlchemy()
migrate = Migrate()


def celery_init_app(app: Flask) -> Celery:
    """
    Bind a Celery instance to the Flask app.

    Every task body runs inside an application context so services can use
    db.session and current_app exactly as they do during a request.
    """
    class FlaskTask(Task):
        def __call__(self, *args, **kwargs):
            with app.app_context():
                return self.run(*args, **kwargs)

    celery_app = Celery(app.name, task_cls=FlaskTask)
    celery_app.config_from_object(app.config["CELERY"])
    celery_app.set_default()
    app.extensions["celery"] = celery_app
    return celery_app
