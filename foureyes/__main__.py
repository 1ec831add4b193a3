import logging

import sentry_sdk
import uvicorn

from foureyes.app import create_app
from foureyes.config import load_settings
from foureyes.metrics import start_prometheus

log = logging.getLogger(__name__)


def main():
    settings = load_settings()
    logging.basicConfig(
        level=settings.loglvl,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    if settings.sentry_dsn:
        sentry_sdk.init(dsn=settings.sentry_dsn, traces_sample_rate=1.0)
    if settings.metrics_port:
        start_prometheus(settings.metrics_port)
        log.info("Started metrics server", extra=dict(port=settings.metrics_port))
    uvicorn.run(
        create_app(settings), host=settings.host, port=settings.port, log_config=None
    )


if __name__ == "__main__":
    main()
