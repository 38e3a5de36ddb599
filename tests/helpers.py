from models import storage

PASSWORD = "Secret123"
API = "/api/v1"


def login(client, username, password=PASSWORD):
    return client.post(f"{API}/auth/login", json={"username": username, "password": password})


def cookie_value(client, name):
    cookie = client.get_cookie(name)
    return cookie.value if cookie else None


def fresh(obj):
    """Reload obj from the database, dropping anything cached in the session."""
    storage.get_session().expire_all()
    return storage.get(type(obj), obj.id)
