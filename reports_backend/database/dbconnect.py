import os
import threading
from dataclasses import dataclass
from typing import Dict, Optional

from dotenv import load_dotenv
from sqlalchemy import create_engine
from sqlalchemy.engine import URL, Connection, Engine
from sqlalchemy.pool import NullPool

# Load environment variables
# Try reports_backend/.env first, then fall back to project root/.env
backend_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
env_path = os.path.join(backend_dir, '.env')
if os.path.exists(env_path):
    load_dotenv(env_path)
else:
    # Fall back to default behavior (searches from current directory upward)
    load_dotenv()


# Environment suffix -> logical target name
TARGET_INDEX = {
    "firmas": 1,
    "firmas_2": 2,
    "imprenta": 3,
    "orel": 4,
    "plantillas": 5,
}

_DRIVERS = {
    "mysql": "mysql+mysqlconnector",
    "mariadb": "mysql+mysqlconnector",
    "postgres": "postgresql+psycopg2",
    "postgresql": "postgresql+psycopg2",
    "sqlite": "sqlite",
}


class ConfigurationError(Exception):
    """Raised when a database target is unknown or misconfigured."""


@dataclass(frozen=True)
class DatabaseTarget:
    name: str
    host: Optional[str]
    port: int
    user: Optional[str]
    password: Optional[str]
    database: Optional[str]
    dialect: str = "mysql"

    @classmethod
    def from_env(cls, name: str) -> "DatabaseTarget":
        index = TARGET_INDEX.get(name)
        if index is None:
            raise ConfigurationError(f"Unknown database target '{name}'")
        port = os.getenv(f"DB_PORT_{index}")
        return cls(
            name=name,
            host=os.getenv(f"DB_HOST_{index}"),
            port=int(port) if port and port.isdigit() else 3306,
            user=os.getenv(f"DB_USER_{index}"),
            password=os.getenv(f"DB_PASS_{index}"),
            database=os.getenv(f"DB_NAME_{index}"),
            dialect=(os.getenv(f"DB_DIALECT_{index}") or "mysql").lower(),
        )

    def url(self) -> URL:
        drivername = _DRIVERS.get(self.dialect)
        if drivername is None:
            raise ConfigurationError(
                f"Unsupported dialect '{self.dialect}' for target '{self.name}'"
            )
        if drivername == "sqlite":
            return URL.create(drivername, database=self.database)
        return URL.create(
            drivername,
            username=self.user,
            password=self.password,
            host=self.host,
            port=self.port,
            database=self.database,
        )

    def describe(self) -> str:
        return f"host={self.host}:{self.port} user={self.user} db={self.database} dialect={self.dialect}"


_engines: Dict[str, Engine] = {}
_engines_lock = threading.Lock()


def get_target(name: str) -> DatabaseTarget:
    return DatabaseTarget.from_env(name)


def get_engine(name: str) -> Engine:
    """
    Return the pooled engine for a target, creating it on first use.
    Engines live for the whole process.
    """
    with _engines_lock:
        engine = _engines.get(name)
        if engine is None:
            from reports_backend.modules.logger import info

            target = get_target(name)
            engine = create_engine(target.url(), pool_pre_ping=True)
            _engines[name] = engine
            info(f"[{name}][env] {target.describe()}")
        return engine


def register_engine(name: str, engine: Engine) -> None:
    """Install a pre-built engine for a target (used by tests and embedded setups)."""
    with _engines_lock:
        _engines[name] = engine


def dispose_engines() -> None:
    with _engines_lock:
        for engine in _engines.values():
            engine.dispose()
        _engines.clear()


def create_temporary_connection(name: str) -> Connection:
    """
    Open an unpooled connection to a target. Callers must close it.
    """
    try:
        from reports_backend.modules.logger import info

        target = get_target(name)
        engine = create_engine(target.url(), poolclass=NullPool)
        connection = engine.connect()
        info(f"Temporary connection to '{name}' established successfully")
        return connection
    except Exception as e:
        from reports_backend.modules.logger import error
        error(f"Error establishing temporary connection to '{name}': {str(e)}")
        raise
