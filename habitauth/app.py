# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

import importlib
from typing import Any, Protocol, cast

from flask import Flask
from werkzeug.middleware.proxy_fix import ProxyFix

from habitauth.container import Container
from habitauth.infrastructure.db import init_db
from habitauth.shared.config import AppConfig, load_config
from habitauth.shared.logging import logger, setup_logging
from habitauth.shared.middleware.error_handler import configure_error_handling
from habitauth.shared.middleware.request_logger import configure_request_logging


class _CORSCallable(Protocol):
    def __call__(self, app: Flask, **kwargs: Any) -> Any: ...


_flask_cors = importlib.import_module("flask_cors")
CORS = cast(_CORSCallable, _flask_cors.CORS)


def create_app(config: AppConfig | None = None, container: Container | None = None) -> Flask:
    config = config or (container.config if container else load_config())
    container = container or Container(config)

    setup_logging(
        "DEBUG" if config.debug_logging else config.log_level,
        log_file=config.log_file,
    )
    init_db(container.engine)

    app = Flask(__name__)
    if config.security.trusted_proxy_hops:
        hops = config.security.trusted_proxy_hops
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=hops, x_proto=hops)
    app.extensions["habitauth.container"] = container
    configure_error_handling(app, config)
    configure_request_logging(app, debug_mode=config.debug_logging)

    cors_kwargs: dict[str, object] = {
        "resources": {r"/api/*": {"origins": config.security.allowed_origins}}
    }
    if any(o != "*" for o in config.security.allowed_origins):
        cors_kwargs["supports_credentials"] = True
    CORS(app, **cors_kwargs)

    app.register_blueprint(container.auth_controller.as_blueprint())
    app.register_blueprint(container.user_controller.as_blueprint())
    app.register_blueprint(container.admin_controller.as_blueprint())

    @app.after_request
    def _add_security_headers(resp):
        resp.headers.setdefault("X-Frame-Options", "DENY")
        resp.headers.setdefault("Referrer-Policy", "no-referrer")
        resp.headers.setdefault("X-Content-Type-Options", "nosniff")
        resp.headers.setdefault("Cross-Origin-Opener-Policy", "same-origin")
        resp.headers.setdefault("Cache-Control", "no-store")
        resp.headers.setdefault(
            "Permissions-Policy",
            "geolocation=(), microphone=(), camera=(), payment=(), usb=()",
        )

        if config.security.enable_hsts:
            resp.headers.setdefault(
                "Strict-Transport-Security",
                "max-age=31536000; includeSubDomains; preload",
            )

        return resp

    logger.info(f"Flask app initialized (profile={config.profile.value})")
    return app


if __name__ == "__main__":
    create_app().run(host="0.0.0.0", port=5000, debug=True)
