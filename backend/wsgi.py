# backend/wsgi.py
from eventstock import create_app

app = create_app()
