# backend/wsgi.py
from shopkeep import create_app

app = create_app()
