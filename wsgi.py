"""
WSGI entry point for the flip oracle
"""
import atexit
import logging

from dotenv import load_dotenv

load_dotenv()

from flip_oracle.factory import create_app

logger = logging.getLogger(__name__)

app = create_app()

cfg = app.config["APP_CONFIG"]
reconciler = app.config["ORACLE_SERVICES"].reconciler
if cfg["RECONCILER_ENABLED"]:
    reconciler.start()
    atexit.register(reconciler.stop)
else:
    logger.warning("RECONCILER_ENABLED=false: player state will not follow on-chain results")

# Gunicorn/uWSGI compatibility
application = app

if __name__ == "__main__":
    app.run(host=cfg["APP_HOST"], port=cfg["APP_PORT"], debug=cfg["FLASK_DEBUG"], use_reloader=False)
