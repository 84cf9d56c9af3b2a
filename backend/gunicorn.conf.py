import os

wsgi_app = "shopauth.wsgi:app"

# Bind & workers. Sessions fall back to process memory without REDIS_URL, so
# run a single worker unless Redis is configured.
bind = os.getenv("GUNICORN_BIND", "0.0.0.0:8000")
workers = int(os.getenv("GUNICORN_WORKERS", "2" if os.getenv("REDIS_URL") else "1"))
threads = int(os.getenv("GUNICORN_THREADS", "4"))
timeout = 60
graceful_timeout = 30
keepalive = 5

# Logs to stdout/stderr (collected by the container runtime)
accesslog = "-"
errorlog = "-"
loglevel = os.getenv("LOG_LEVEL", "info").lower()

# ProxyFix in the app already trusts one hop
forwarded_allow_ips = "*"
proxy_protocol = False
