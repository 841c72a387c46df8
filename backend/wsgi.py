# backend/wsgi.py
from docledger import create_app

app = create_app()
