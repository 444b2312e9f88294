import os
import logging
from pathlib import Path
from typing import Optional

from sqlalchemy.engine import URL

try:
	from dotenv import load_dotenv
except ImportError:
	logging.warning("python-dotenv not available; using environment variables only")
else:
	loaded = load_dotenv()
	if not loaded and Path(".env").exists():
		raise RuntimeError(".env file present but failed to load")


def get_str_env(name: str, default: str) -> str:
	raw = os.getenv(name)
	if raw is None or raw == "":
		return default
	return raw


def get_optional_str_env(name: str) -> Optional[str]:
	raw = os.getenv(name)
	if raw is None or raw == "":
		return None
	return raw


def get_int_env(name: str, default: int) -> int:
	raw = os.getenv(name)
	if raw is None or raw == "":
		return default
	try:
		return int(raw)
	except ValueError:
		logging.exception("Invalid %s: %r", name, raw)
		return default


def get_optional_int_env(name: str) -> Optional[int]:
	raw = os.getenv(name)
	if raw is None or raw == "":
		return None
	try:
		return int(raw)
	except ValueError:
		logging.exception("Invalid %s: %r", name, raw)
		return None


def database_url() -> str:
	"""Return `DATABASE_URL` or a Postgres URL assembled from GARAGE_DB_* variables.

	The time zone is applied to every connection through libpq's `options`
	parameter, the same way a `TimeZone=` DSN keyword would.
	"""
	explicit = get_optional_str_env("DATABASE_URL")
	if explicit:
		return explicit
	url = URL.create(
		"postgresql+psycopg2",
		username=get_str_env("GARAGE_DB_USER", "postgres"),
		password=get_optional_str_env("GARAGE_DB_PASSWORD"),
		host=get_str_env("GARAGE_DB_HOST", "localhost"),
		port=get_int_env("GARAGE_DB_PORT", 5432),
		database=get_str_env("GARAGE_DB_NAME", "learn"),
		query={"options": f"-c timezone={get_str_env('GARAGE_DB_TIMEZONE', 'UTC')}"},
	)
	return url.render_as_string(hide_password=False)


def upsert_mode() -> str:
	return (os.getenv("GARAGE_UPSERT_MODE", "append") or "append").strip().lower()


def log_level() -> str:
	return get_str_env("GARAGE_LOG_LEVEL", "INFO").strip().upper()
