"""Persistence layer. `storage` is configured by create_app() via init_app()."""
from models.db_storage import DBStorage

storage = DBStorage()
