from models.user import User  # noqa: F401  registers the users table before create_all
from sqlalchemy import create_engine
from sqlalchemy.orm import scoped_session, sessionmaker
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool
from os import getenv
from models.base_model import Base
from dotenv import load_dotenv

load_dotenv()


class DBStorage:
    __engine = None
    __session = None

    def __init__(self):
        """Initialize engine based on environment"""
        ENV = getenv("APP_ENV", "dev")
        DATABASE_URL = getenv("DATABASE_URL")
        echo = getenv("SQL_ECHO", "0").lower() in ("1", "true", "yes")

        if DATABASE_URL:
            self.__engine = create_engine(DATABASE_URL, pool_pre_ping=True, echo=echo)
        elif ENV == "test":
            # One shared in-memory connection so every session sees the same tables
            self.__engine = create_engine(
                "sqlite://",
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
                echo=echo,
            )
        elif ENV == "dev":
            # SQLite for development
            self.__engine = create_engine("sqlite:///stellaraid.db", echo=echo)
        else:
            raise RuntimeError("DATABASE_URL must be set outside dev/test")

    def reload(self):
        """Create tables and start session"""
        Base.metadata.create_all(self.__engine)
        session_factory = sessionmaker(bind=self.__engine, expire_on_commit=False)
        Session = scoped_session(session_factory)
        self.__session = Session

    def drop_all(self):
        """Drop every table (tests reset the schema with drop_all + reload)"""
        if self.__session is not None:
            self.__session.remove()
        Base.metadata.drop_all(self.__engine)

    def new(self, obj):
        """Add object to session"""
        self.__session.add(obj)

    def save(self):
        """Commit session"""
        try:
            self.__session.commit()
        except SQLAlchemyError:
            self.__session.rollback()
            raise

    def rollback(self):
        self.__session.rollback()

    def close(self):
        """Remove session (for API teardown)"""
        self.__session.remove()

    # expose the SQLAlchemy session for advanced querying (joins, filters, etc.)
    def get_session(self):
        return self.__session
