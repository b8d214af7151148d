# backend/wsgi.py
from vendorpos import create_app

app = create_app()
