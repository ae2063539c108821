# backend/wsgi.py
from stockcount import create_app

app = create_app()
