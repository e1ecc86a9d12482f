import os
import logging
from collections.abc import Mapping
from pathlib import Path

import toml
from dotenv import dotenv_values

from datasync_api.config.sections import Django, Source, Sync
from datasync_api.config.serializable import Serializable
from datasync_api.errors import ConfigurationError
from datasync_api.type_defs import JsonObject, JsonValue

logger = logging.getLogger(__name__)

# Environment variable -> (section, attribute). A section of None targets AppSettings itself.
ENVIRONMENT_OPTIONS: dict[str, tuple[str | None, str]] = {
    "SOURCE_URL": ("source", "url"),
    "SOURCE_SECRET": ("source", "secret"),
    "SOURCE_PAGE_SIZE": ("source", "page_size"),
    "SOURCE_TIMEOUT": ("source", "timeout"),
    "SYNC_TARGET": ("sync", "target"),
    "CHECKPOINT_BACKEND": ("sync", "checkpoint_backend"),
    "SYNC_MAX_ATTEMPTS": ("sync", "max_attempts"),
    "SYNC_MAX_PAGES": ("sync", "max_pages"),
    "SYNC_APPLY_DELETES": ("sync", "apply_deletes"),
    "DATASYNC_DB_ENGINE": ("django", "db_engine"),
    "DATASYNC_DB_NAME": ("django", "db_name"),
    "DATASYNC_DEBUG": (None, "debug"),
}


class AppSettings(Serializable):
    """Settings for one invocation.

    Built once at startup and handed to each component. Values are layered:
    defaults, then the TOML config file, then the local ``.env`` file, then the
    process environment. The source secret is accepted from the environment
    layers only and is never written to the config file.
    """

    debug: bool = False

    def __init__(
        self,
        config_file: Path | str | None = None,
        env_file: Path | str | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        self.django = Django()
        self.source = Source()
        self.sync = Sync()
        self._config_file = Path(config_file).expanduser() if config_file else None
        self._env_file = Path(env_file).expanduser() if env_file else None
        self._environ = os.environ if environ is None else environ

    @classmethod
    def from_environment(
        cls,
        config_file: Path | str | None = None,
        env_file: Path | str | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> "AppSettings":
        settings = cls(config_file=config_file, env_file=env_file, environ=environ)
        settings.load()
        return settings

    @property
    def config_file_path(self) -> Path:
        if self._config_file is not None:
            return self._config_file
        configured_path = self._environ.get("DATASYNC_CONFIG_FILE")
        if configured_path:
            return Path(configured_path).expanduser()
        project_name = Path(__file__).parent.parent.name.split("_")[0]
        return Path.home() / ".config" / project_name / "config.toml"

    @property
    def env_file_path(self) -> Path:
        if self._env_file is not None:
            return self._env_file
        return Path(self._environ.get("DATASYNC_ENV_FILE") or ".env").expanduser()

    def load(self) -> None:
        self.load_config_file()
        if self.env_file_path.is_file():
            env_values = {
                key: value
                for key, value in dotenv_values(self.env_file_path).items()
                if value is not None
            }
            self.apply_environment(env_values)
        self.apply_environment(self._environ)

    def load_config_file(self) -> None:
        if not self.config_file_path.exists():
            return
        try:
            with self.config_file_path.open() as file:
                data = toml.load(file)
        except (OSError, toml.TomlDecodeError) as error:
            raise ConfigurationError(
                f"Error loading configuration from {self.config_file_path}: {error}"
            ) from error

        for key, value in data.items():
            if key.startswith("_"):
                continue
            attr = getattr(self, key, None)
            if isinstance(attr, Serializable):
                attr.from_dict(value)
            elif key in self._annotations():
                self.set_value(key, value)

    def apply_environment(self, environ: Mapping[str, str]) -> None:
        for variable, (section_name, attribute) in ENVIRONMENT_OPTIONS.items():
            if variable not in environ:
                continue
            target = self if section_name is None else getattr(self, section_name)
            if attribute == "secret":
                target.secret = environ[variable]
            else:
                target.set_value(attribute, environ[variable])

    def save(self) -> None:
        data = self.sort_dict(self.to_dict())
        try:
            self.config_file_path.parent.mkdir(parents=True, exist_ok=True)
            with self.config_file_path.open("w") as file:
                toml.dump(data, file)
        except OSError as error:
            logger.exception(f"Error saving configuration: {str(error)}")

    def require_source(self) -> None:
        missing = [f"source.{key}" for key in ("url",) if not getattr(self.source, key)]
        if not self.source.secret:
            missing.append("SOURCE_SECRET")
        if missing:
            raise ConfigurationError(
                f"Missing required configuration: {', '.join(missing)}"
            )

    def sort_dict(self, d: Mapping[str, JsonValue]) -> JsonObject:
        sorted_dict: JsonObject = {}
        for key in sorted(d.keys()):
            value = d[key]
            if isinstance(value, dict):
                sorted_dict[key] = self.sort_dict(value)
            else:
                sorted_dict[key] = value
        return sorted_dict
