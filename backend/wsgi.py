# backend/wsgi.py
from taxcontrib import create_app

app = create_app()
