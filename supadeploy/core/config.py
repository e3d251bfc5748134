"""Configuration loader for supadeploy. Builds runtime settings from TOML, a .env file, and environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Tuple

try:
    import tomllib
except ImportError:  # pragma: no cover - fallback for older Python
    import tomli as tomllib  # type: ignore

from supadeploy.core.errors import MissingCredentialsError


DEFAULT_CONFIG_NAME = "supadeploy.toml"
DOTENV_NAME = ".env"
SENTINEL_UUID = "00000000-0000-0000-0000-000000000000"

URL_ENV_KEYS = ("SUPABASE_URL", "EXPO_PUBLIC_SUPABASE_URL", "NEXT_PUBLIC_SUPABASE_URL")
SERVICE_KEY_ENV_KEYS = ("SUPABASE_SERVICE_ROLE_KEY",)
ANON_KEY_ENV_KEYS = ("SUPABASE_ANON_KEY", "EXPO_PUBLIC_SUPABASE_ANON_KEY", "NEXT_PUBLIC_SUPABASE_ANON_KEY")
KEY_POLICIES = ("service_role", "prefer_service_role", "anon")

ENV_CONFIG_MAP = {
    "SUPABASE_URL": "supabase_url",
    "SUPABASE_DB_URL": "database_url",
    "SUPADEPLOY_EXEC_RPC": "exec_rpc",
    "SUPADEPLOY_EXEC_PARAM": "exec_param",
    "SUPADEPLOY_REQUEST_TIMEOUT": "request_timeout",
}

DEFAULT_VERIFY_FUNCTIONS: Dict[str, Dict[str, Any]] = {
    "search_profiles_by_name_chain": {"p_name_chain": "test"},
    "get_profile_tree_context": {"p_profile_id": SENTINEL_UUID},
    "search_name_chain": {"p_names": ["test"], "p_limit": 1},
}
DEFAULT_DIAGNOSE_TABLES = ["profiles", "marriages", "profile_link_requests"]
DEFAULT_NOT_FOUND_PHRASES = ["Could not find the function"]


@dataclass(frozen=True)
class ProjectCredentials:
    """Project endpoint and the access key chosen for this invocation.

    Attributes:
        endpoint_url: Project base URL without trailing slash.
        access_key: Service-role or anonymous API key.
        key_kind: ``service_role`` or ``anon``.
    """

    endpoint_url: str
    access_key: str
    key_kind: str


@dataclass(frozen=True)
class Settings:
    """Runtime configuration for deploy, verify, and migration commands.

    Attributes:
        project_root: Base directory for relative SQL paths.
        migrations_dir: Directory listed by ``apply`` when no file is given.
        exec_rpc: RPC used to execute raw SQL statements.
        exec_param: Parameter name the exec RPC takes the SQL text in.
        fallback_sql_path: File the SQL is saved to when manual deployment is required.
        history_path: JSON file that records successful deployments.
        backups_dir: Directory for backfill backups.
        request_timeout: Timeout in seconds for raw HTTP requests.
        not_found_phrases: Error substrings that mean a function does not exist.
        verify_functions: Function name to sentinel params.
        diagnose_tables: Tables probed by ``diagnose``.
        database_url: Optional direct Postgres DSN for catalog queries.
    """

    project_root: Path
    migrations_dir: Path
    exec_rpc: str = "exec_sql"
    exec_param: str = "sql"
    fallback_sql_path: Path = Path("supabase/DEPLOY_THIS.sql")
    history_path: Path = Path("supabase/migration-history.json")
    backups_dir: Path = Path("backups")
    request_timeout: float = 30.0
    not_found_phrases: Tuple[str, ...] = tuple(DEFAULT_NOT_FOUND_PHRASES)
    verify_functions: Dict[str, Dict[str, Any]] = field(default_factory=lambda: dict(DEFAULT_VERIFY_FUNCTIONS))
    diagnose_tables: Tuple[str, ...] = tuple(DEFAULT_DIAGNOSE_TABLES)
    database_url: str = ""


def project_root() -> Path:
    """Resolve the project root (``SUPADEPLOY_ROOT`` or the working directory)."""
    value = str(os.environ.get("SUPADEPLOY_ROOT") or "").strip()
    return Path(value).resolve() if value else Path.cwd()


def load_env(path: Path) -> None:
    """Load environment variables from a .env-style file without overriding existing ones.

    Args:
        path (Path): Filesystem path value.
    """
    if not path.exists():
        return
    for line in path.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        if key.startswith("export "):
            key = key[len("export ") :].strip()
        value = value.strip().strip('"').strip("'")
        if key and key not in os.environ:
            os.environ[key] = value


def load_config(path: Path | None) -> Dict[str, Any]:
    """Load a TOML config file and return the supadeploy section or top-level dict."""
    if not path or not path.exists():
        return {}
    data = tomllib.loads(path.read_text(encoding="utf-8"))
    if isinstance(data, dict) and "supadeploy" in data and isinstance(data["supadeploy"], dict):
        return data["supadeploy"]
    return data or {}


def _env_or_config(env: Mapping[str, str], config: Mapping[str, Any], env_key: str, config_key: str, default: Any) -> Any:
    if env_key in env and env[env_key] != "":
        return env[env_key]
    if config_key in config:
        return config[config_key]
    return default


def _coerce_float(value: Any, default: float) -> float:
    try:
        return float(value)
    except Exception:
        return default


def _coerce_str_list(value: Any, default: List[str]) -> List[str]:
    if value is None:
        return list(default)
    if isinstance(value, str):
        items = [part.strip() for part in value.split(",")]
    elif isinstance(value, (list, tuple)):
        items = [str(part).strip() for part in value]
    else:
        return list(default)
    items = [item for item in items if item]
    return items or list(default)


def _coerce_function_specs(value: Any) -> Dict[str, Dict[str, Any]]:
    if not isinstance(value, Mapping) or not value:
        return dict(DEFAULT_VERIFY_FUNCTIONS)
    specs: Dict[str, Dict[str, Any]] = {}
    for name, params in value.items():
        specs[str(name)] = dict(params) if isinstance(params, Mapping) else {}
    return specs


def _resolve_path(root: Path, value: Any) -> Path:
    path = Path(str(value))
    return path if path.is_absolute() else root / path


def build_effective_config(
    config: Mapping[str, Any],
    env: Mapping[str, str],
    *,
    project_root: Path,
) -> Dict[str, Any]:
    """Build the effective config with env overrides applied."""
    database_url = _env_or_config(env, config, "SUPABASE_DB_URL", "database_url", "") or env.get("DATABASE_URL", "")
    return {
        "migrations_dir": _resolve_path(
            project_root, _env_or_config(env, config, "SUPADEPLOY_MIGRATIONS_DIR", "migrations_dir", "supabase/migrations")
        ),
        "exec_rpc": str(_env_or_config(env, config, "SUPADEPLOY_EXEC_RPC", "exec_rpc", "exec_sql")),
        "exec_param": str(_env_or_config(env, config, "SUPADEPLOY_EXEC_PARAM", "exec_param", "sql")),
        "fallback_sql_path": _resolve_path(
            project_root, _env_or_config(env, config, "SUPADEPLOY_FALLBACK_SQL", "fallback_sql_path", "supabase/DEPLOY_THIS.sql")
        ),
        "history_path": _resolve_path(
            project_root,
            _env_or_config(env, config, "SUPADEPLOY_HISTORY_PATH", "history_path", "supabase/migration-history.json"),
        ),
        "backups_dir": _resolve_path(project_root, _env_or_config(env, config, "SUPADEPLOY_BACKUPS_DIR", "backups_dir", "backups")),
        "request_timeout": _coerce_float(
            _env_or_config(env, config, "SUPADEPLOY_REQUEST_TIMEOUT", "request_timeout", 30.0), 30.0
        ),
        "not_found_phrases": _coerce_str_list(config.get("not_found_phrases"), DEFAULT_NOT_FOUND_PHRASES),
        "verify_functions": _coerce_function_specs(config.get("verify_functions")),
        "diagnose_tables": _coerce_str_list(
            _env_or_config(env, config, "SUPADEPLOY_DIAGNOSE_TABLES", "diagnose_tables", None), DEFAULT_DIAGNOSE_TABLES
        ),
        "database_url": str(database_url or "").strip(),
    }


def apply_config_env_overrides(config: Mapping[str, Any], env: Mapping[str, str]) -> None:
    """Populate env vars from config when not already set."""
    for env_key, config_key in ENV_CONFIG_MAP.items():
        if env_key in env and env[env_key] != "":
            continue
        value = config.get(config_key)
        if value is None:
            continue
        value_str = str(value).strip()
        if value_str == "":
            continue
        os.environ[env_key] = value_str


def load_settings(config_path: Path | None = None) -> Settings:
    """Load runtime settings from config file, .env file, environment variables, and defaults.

    Args:
        config_path (Path | None): Path to the configuration file.

    Returns:
        Settings: Resolved settings for one invocation.
    """
    root = project_root()
    load_env(root / DOTENV_NAME)
    cfg_path = config_path or Path(os.getenv("SUPADEPLOY_CONFIG") or root / DEFAULT_CONFIG_NAME)
    cfg = load_config(cfg_path)
    apply_config_env_overrides(cfg, os.environ)
    effective = build_effective_config(cfg, os.environ, project_root=root)
    return Settings(
        project_root=root,
        migrations_dir=effective["migrations_dir"],
        exec_rpc=effective["exec_rpc"],
        exec_param=effective["exec_param"],
        fallback_sql_path=effective["fallback_sql_path"],
        history_path=effective["history_path"],
        backups_dir=effective["backups_dir"],
        request_timeout=effective["request_timeout"],
        not_found_phrases=tuple(effective["not_found_phrases"]),
        verify_functions=effective["verify_functions"],
        diagnose_tables=tuple(effective["diagnose_tables"]),
        database_url=effective["database_url"],
    )


def _first_env(env: Mapping[str, str], keys: Tuple[str, ...]) -> str:
    for key in keys:
        value = str(env.get(key) or "").strip()
        if value:
            return value
    return ""


def load_credentials(env: Mapping[str, str] | None = None, *, key_policy: str = "service_role") -> ProjectCredentials:
    """Read the project URL and access key from the environment.

    Args:
        env (Mapping[str, str] | None): Environment mapping; defaults to ``os.environ``.
        key_policy (str): ``service_role`` requires the service-role key, ``prefer_service_role``
            falls back to the anonymous key, ``anon`` uses the anonymous key only.

    Returns:
        ProjectCredentials: Endpoint URL and chosen key.

    Raises:
        MissingCredentialsError: If the URL or the required key is absent.
    """
    if key_policy not in KEY_POLICIES:
        raise ValueError(f"Unknown key policy: {key_policy}")
    source = os.environ if env is None else env
    url = _first_env(source, URL_ENV_KEYS)
    service_key = _first_env(source, SERVICE_KEY_ENV_KEYS)
    anon_key = _first_env(source, ANON_KEY_ENV_KEYS)

    missing: List[str] = []
    if not url:
        missing.append(URL_ENV_KEYS[0])
    key, kind = "", ""
    if key_policy == "service_role":
        key, kind = service_key, "service_role"
        if not key:
            missing.append(SERVICE_KEY_ENV_KEYS[0])
    elif key_policy == "prefer_service_role":
        if service_key:
            key, kind = service_key, "service_role"
        elif anon_key:
            key, kind = anon_key, "anon"
        else:
            missing.append(f"{SERVICE_KEY_ENV_KEYS[0]} (or {ANON_KEY_ENV_KEYS[0]})")
    else:
        key, kind = anon_key, "anon"
        if not key:
            missing.append(ANON_KEY_ENV_KEYS[0])
    if missing:
        raise MissingCredentialsError(missing)
    return ProjectCredentials(endpoint_url=url.rstrip("/"), access_key=key, key_kind=kind)
