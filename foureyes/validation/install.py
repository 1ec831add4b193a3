"""Configuration options that affect an entire instance of foureyes"""

import logging

from cerberus import Validator

log = logging.getLogger(__name__)


class FourEyesConfigValidator(Validator):
    def _normalize_coerce_ref(self, value):
        # Bare branch names are accepted in the config and stored as full refs
        if isinstance(value, str) and value and not value.startswith("refs/"):
            return f"refs/heads/{value}"
        return value

    def _normalize_coerce_strip(self, value):
        if isinstance(value, str):
            return value.strip()
        return value


# Credentials for the GitHub app installed on the repositories this instance guards
# note: these credentials are used to get access_tokens for the installation
github_app_fields = {
    "expires": {"type": "integer", "min": 1, "max": 600},
    "id": {"type": "integer"},
    "installation_id": {"type": "integer"},
    "pem": {"type": ["string", "dict"]},
}

config_schema = {
    "github": {
        "type": "dict",
        "schema": {
            "url": {"type": "string"},
            "api_url": {"type": "string"},
            "verify_ssl": {"type": "boolean"},
            "ssl_pem": {"type": "string"},
            # Shared secret used to sign webhook deliveries
            "webhook_secret": {"type": "string", "coerce": str},
            "retry_backoff": {"type": "number", "min": 0},
            "timeouts": {
                "type": "dict",
                "schema": {
                    "connect": {"type": "integer", "min": 1},
                    "receive": {"type": "integer", "min": 1},
                },
            },
            "integration": {"type": "dict", "schema": github_app_fields},
        },
    },
    "setup": {
        "type": "dict",
        "schema": {
            "loglvl": {
                "type": "string",
                "allowed": ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
            },
            "host": {"type": "string"},
            "port": {"type": "integer"},
            # Only pushes to exactly these refs are checked
            "protected_refs": {
                "type": "list",
                "schema": {"type": "string", "coerce": "ref"},
            },
            # The merge queue command that counts as an approval
            "approval_comment": {
                "type": "string",
                "empty": False,
                "coerce": "strip",
            },
            "status_context": {"type": "string", "empty": False},
            "comments_page_size": {"type": "integer", "min": 1, "max": 100},
            "max_concurrent_checks": {"type": "integer", "min": 1},
            "deadline_seconds": {"type": "number", "min": 1},
            "signature_algorithms": {
                "type": "list",
                "schema": {"type": "string", "allowed": ["sha1", "sha256"]},
            },
            "metrics_port": {"type": "integer", "nullable": True},
            "sentry_dsn": {"type": "string", "nullable": True},
        },
    },
}


def validate_install_configuration(inputted_dict):
    validator = FourEyesConfigValidator(allow_unknown=True)
    is_valid = validator.validate(inputted_dict, config_schema)
    if not is_valid:
        log.warning(
            "Configuration considered invalid, using normalized dict as it is",
            extra=dict(errors=validator.errors),
        )
        # Bare refs are coerced even when the document is invalid
        normalized = validator.normalized(
            inputted_dict, config_schema, always_return_document=True
        )
        return normalized if normalized is not None else inputted_dict
    return validator.document
