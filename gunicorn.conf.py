# ============================================
# ERP Gestion - Configuration Gunicorn
# ============================================
import os
import multiprocessing

# --- Server ---
# Chaque ecriture reecrit un fichier JSON entier sous verrou exclusif :
# au-dela de quelques workers ils s'attendent sur les memes verrous.
bind = f"0.0.0.0:{os.getenv('PORT', '8000')}"
workers = int(os.getenv("ERP_WORKERS", min(multiprocessing.cpu_count() + 1, 4)))
worker_class = "uvicorn.workers.UvicornWorker"
# Les routes sont synchrones et s'executent dans le pool de threads d'uvicorn
worker_connections = 200

# --- Timeouts ---
# Les exports Excel et les etats TVA relisent toutes les factures de l'exercice
timeout = 120
graceful_timeout = 30
keepalive = 5

# --- Memory ---
max_requests = 1000
max_requests_jitter = 50

# --- Logging ---
accesslog = os.getenv("ERP_ACCESS_LOG", "-")
errorlog = os.getenv("ERP_ERROR_LOG", "-")
loglevel = os.getenv("ERP_LOG_LEVEL", "info").lower()
access_log_format = '%(h)s %(l)s %(u)s %(t)s "%(r)s" %(s)s %(b)s "%(f)s" "%(a)s" %(D)sms'

# --- Process ---
# Aucun descripteur de verrou n'est herite du maitre : chaque acces au store
# ouvre son propre fichier .lock, le prechargement est donc sans risque.
preload_app = True
daemon = False

# --- Security ---
limit_request_line = 8190
limit_request_fields = 100
limit_request_field_size = 8190


# --- Hooks ---
def on_starting(server):
    server.log.info("ERP Gestion starting...")


def when_ready(server):
    server.log.info(f"ERP Gestion ready with {workers} workers on {bind}")


def worker_exit(server, worker):
    server.log.info(f"Worker {worker.pid} exiting")
