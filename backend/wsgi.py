# backend/wsgi.py
from tms import create_app

app = create_app()
