# gunicorn -c gunicorn.config.py app:app
import os

worker_class = "gevent"
workers = int(os.getenv("WEB_CONCURRENCY", "4"))
worker_connections = 1000
timeout = int(os.getenv("GUNICORN_TIMEOUT", "60"))
graceful_timeout = 30
bind = "0.0.0.0:{}".format(os.getenv("PORT", "8000"))

loglevel = os.getenv("LOG_LEVEL", "info")
accesslog = "-"
errorlog = "-"
