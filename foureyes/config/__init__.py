import collections
import json
import logging
import os
import re
from base64 import b64decode
from copy import deepcopy
from dataclasses import dataclass
from typing import Any, FrozenSet, List, Optional, Tuple

from yaml import safe_load as yaml_load

from foureyes.validation.install import validate_install_configuration


class MissingConfigException(Exception):
    pass


log = logging.getLogger(__name__)

DEFAULT_PROTECTED_REFS = ["refs/heads/staging", "refs/heads/trying"]

default_config = {
    "github": {
        "api_url": "https://api.github.com",
        "timeouts": {"connect": 10, "receive": 30},
        "retry_backoff": 0.5,
        "integration": {"expires": 500},
    },
    "setup": {
        "loglvl": "INFO",
        "host": "0.0.0.0",
        "port": 8080,
        "protected_refs": DEFAULT_PROTECTED_REFS,
        "approval_comment": "bors r+",
        "status_context": "four-eyes",
        "comments_page_size": 10,
        "max_concurrent_checks": 4,
        "deadline_seconds": 8,
        "signature_algorithms": ["sha1", "sha256"],
        "metrics_port": None,
        "sentry_dsn": None,
    },
}


def update(d, u):
    d = deepcopy(d)
    for k, v in u.items():
        if isinstance(v, collections.abc.Mapping) and isinstance(
            d.get(k), collections.abc.Mapping
        ):
            d[k] = update(d.get(k, {}), v)
        else:
            d[k] = v
    return d


class ConfigHelper(object):
    def __init__(self):
        self._params = None
        self.loaded_files = {}

    # Load config values from environment variables
    def load_env_var(self):
        val = {}
        for env_var in os.environ:
            if not env_var.startswith("__") and "__" in env_var:
                multiple_level_vars, data = self._parse_path_and_value_from_envvar(
                    env_var
                )
                current = val
                for c in multiple_level_vars[:-1]:
                    current = current.setdefault(c.lower(), {})
                current[multiple_level_vars[-1].lower()] = data
        return val

    def _env_var_value_cast(self, data):
        if isinstance(data, str):
            if data in ("true", "True", "TRUE", "on", "On", "ON"):
                return True
            elif data in ("false", "False", "FALSE", "off", "Off", "OFF"):
                return False
            elif re.match(r"^-?\d+$", data):
                return int(data)
            elif re.match(r"^-?\d+\.\d+$", data):
                try:
                    return float(data)
                except ValueError:
                    pass

        return data

    def _parse_path_and_value_from_envvar(
        self, env_var_name: str
    ) -> Tuple[List[str], Any]:
        """
        Given an envvar, calculate both the data that needs to be put in the config and
            the location in the config where it needs to be set.

        For example:
            GITHUB__INTEGRATION__ID='1234' --> { 'github': { 'integration': { 'id': 1234 }}}

        Args:
            env_var_name (str): The envvar we want to load data from

        Returns:
            Tuple[List[str], Any]: Two elements:
                - The path where the data needs to be set
                - The actual data
        """
        should_load_from_json = env_var_name.startswith("JSONCONFIG___")
        path_to_use = env_var_name if not should_load_from_json else env_var_name[13:]
        data = os.getenv(env_var_name)
        data = data if not should_load_from_json else json.loads(data)
        data = self._env_var_value_cast(data)
        return (path_to_use.split("__"), data)

    @property
    def params(self):
        """
        Construct the config by combining default values, yaml config, and env vars.
        An env var overrides a yaml config value, which overrides the default values.
        """
        if self._params is None:
            content = self.yaml_content()
            env_vars = self.load_env_var()
            temp_result = update(default_config, content)
            unvalidated_final_result = update(temp_result, env_vars)
            final_result = validate_install_configuration(unvalidated_final_result)
            self.set_params(final_result)
        return self._params

    def set_params(self, val):
        self._params = val

    def get(self, *args, **kwargs):
        current_p = self.params
        for el in args:
            try:
                current_p = current_p[el]
            except (KeyError, TypeError):
                raise MissingConfigException(args)
        return current_p

    def load_yaml_file(self):
        yaml_path = os.getenv("FOUREYES_YML", "/config/foureyes.yml")
        with open(yaml_path, "r") as c:
            return c.read()

    def yaml_content(self):
        try:
            return yaml_load(self.load_yaml_file()) or {}
        except FileNotFoundError:
            return {}

    def load_filename_from_path(self, *args):
        if args not in self.loaded_files:
            location = self.get(*args)
            if isinstance(location, dict):
                if location.get("source_type") == "base64env":
                    self.loaded_files[args] = b64decode(location.get("value")).decode()
                    return self.loaded_files[args]
                else:
                    assert location.get("source_type") == "filepath"
                    location = location.get("value")
            try:
                with open(location, "r") as _file:
                    self.loaded_files[args] = _file.read()
            except FileNotFoundError:
                log.exception(
                    "Unable to read file specified in config",
                    extra=dict(file_location=location, path_args=list(args)),
                )
                raise
        return self.loaded_files[args]


config_class_instance = ConfigHelper()


def _get_config_instance():
    return config_class_instance


def get_config(*path, default=None):
    config = _get_config_instance()
    try:
        return config.get(*path)
    except MissingConfigException:
        return default


def load_file_from_path_at_config(*args):
    config = _get_config_instance()
    return config.load_filename_from_path(*args)


def get_verify_ssl(service):
    verify = get_config(service, "verify_ssl")
    if verify is False:
        return False
    return get_config(service, "ssl_pem") or os.getenv("REQUESTS_CA_BUNDLE")


@dataclass(frozen=True)
class FourEyesSettings:
    """Process-wide settings. Built once at startup and never mutated."""

    webhook_secret: str
    app_id: int
    installation_id: int
    private_key: str = ""
    jwt_expires: int = 500
    api_url: str = "https://api.github.com"
    timeouts: Tuple[int, int] = (10, 30)
    retry_backoff: float = 0.5
    verify_ssl: Any = None
    protected_refs: FrozenSet[str] = frozenset(DEFAULT_PROTECTED_REFS)
    approval_comment: str = "bors r+"
    status_context: str = "four-eyes"
    comments_page_size: int = 10
    max_concurrent_checks: int = 4
    deadline_seconds: float = 8
    signature_algorithms: Tuple[str, ...] = ("sha1", "sha256")
    host: str = "0.0.0.0"
    port: int = 8080
    loglvl: str = "INFO"
    metrics_port: Optional[int] = None
    sentry_dsn: Optional[str] = None


def _required(*path):
    value = get_config(*path)
    if value is None or value == "":
        raise MissingConfigException(path)
    return value


def load_settings() -> FourEyesSettings:
    timeouts = get_config("github", "timeouts", default={})
    return FourEyesSettings(
        webhook_secret=str(_required("github", "webhook_secret")),
        app_id=int(_required("github", "integration", "id")),
        installation_id=int(_required("github", "integration", "installation_id")),
        private_key=load_file_from_path_at_config("github", "integration", "pem"),
        jwt_expires=int(get_config("github", "integration", "expires", default=500)),
        api_url=get_config("github", "api_url").strip("/"),
        timeouts=(timeouts.get("connect", 10), timeouts.get("receive", 30)),
        retry_backoff=float(get_config("github", "retry_backoff", default=0.5)),
        verify_ssl=get_verify_ssl("github"),
        protected_refs=frozenset(get_config("setup", "protected_refs")),
        approval_comment=get_config("setup", "approval_comment"),
        status_context=get_config("setup", "status_context"),
        comments_page_size=int(get_config("setup", "comments_page_size")),
        max_concurrent_checks=int(get_config("setup", "max_concurrent_checks")),
        deadline_seconds=float(get_config("setup", "deadline_seconds")),
        signature_algorithms=tuple(get_config("setup", "signature_algorithms")),
        host=get_config("setup", "host"),
        port=int(get_config("setup", "port")),
        loglvl=get_config("setup", "loglvl"),
        metrics_port=get_config("setup", "metrics_port"),
        sentry_dsn=get_config("setup", "sentry_dsn"),
    )
