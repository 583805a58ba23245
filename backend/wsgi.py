# backend/wsgi.py
import atexit

from kassa import create_app
from kassa.store import dispose_store

app = create_app()
atexit.register(dispose_store, app)

if __name__ == "__main__":
    app.run(host="127.0.0.1", port=5000)
