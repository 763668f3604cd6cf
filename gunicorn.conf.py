"""
Gunicorn configuration for the watchtime API.

Run with:  gunicorn -c gunicorn.conf.py watchtime.main:app

Env vars that override defaults:
  PORT     — TCP port to bind (default: 8000)
  WORKERS  — number of worker processes (default: 2)
  TIMEOUT  — worker timeout in seconds (default: 300)
"""
import os

wsgi_app = "watchtime.main:app"

bind = f"0.0.0.0:{os.environ.get('PORT', '8000')}"

# Job triggers run in the request; each one holds a worker until it finishes.
workers = int(os.environ.get("WORKERS", "2"))

worker_class = "uvicorn.workers.UvicornWorker"

keepalive = 5

# A polling cycle over a large registry can take minutes when a platform is slow.
timeout = int(os.environ.get("TIMEOUT", "300"))

loglevel = "info"
accesslog = "-"
errorlog = "-"
access_log_format = '%(h)s "%(r)s" %(s)s %(b)sB %(D)sµs'

graceful_timeout = 30
