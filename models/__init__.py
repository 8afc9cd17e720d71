"""
Global DBStorage instance shared by the API and the services.
"""
from models.db_storage import DBStorage

storage = DBStorage()
storage.reload()
