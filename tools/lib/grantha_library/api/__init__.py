"""HTTP API of the library.

Typical usage example:

    app = create_app()
    app.run()
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from flask import Flask, jsonify, request
from flask_cors import CORS

from grantha_library.api.admin import admin
from grantha_library.api.commentaries import commentaries
from grantha_library.api.errors import register_error_handlers
from grantha_library.api.granthas import granthas
from grantha_library.api.helpers import EXTENSION_KEY, get_services
from grantha_library.api.search import search
from grantha_library.api.suggestions import suggestions
from grantha_library.api.verses import verses
from grantha_library.config import LibraryConfig, load_config
from grantha_library.services import LibraryServices
from grantha_library.store import DocumentStore

logger = logging.getLogger(__name__)

BLUEPRINTS = (granthas, verses, commentaries, suggestions, admin, search)


def create_app(
    config: Optional[LibraryConfig] = None,
    store: Optional[DocumentStore] = None
) -> Flask:
    """Creates the Flask application.

    Args:
        config: Settings. Loaded from file and environment if omitted.
        store: Document store. Connected from config if omitted.

    Returns:
        Configured Flask application.
    """
    config = config or load_config()
    if store is None:
        store = DocumentStore.connect(config.mongodb_uri, config.database_name)
    store.ensure_indexes()

    app = Flask(__name__)
    app.config['MAX_CONTENT_LENGTH'] = config.max_upload_bytes
    app.json.ensure_ascii = False
    app.json.sort_keys = False
    CORS(
        app,
        origins=config.cors_origins,
        supports_credentials=True,
        expose_headers=['Content-Disposition'],
        max_age=86400,
    )

    app.extensions[EXTENSION_KEY] = LibraryServices.create(store, config)
    register_error_handlers(app)
    app.before_request(_log_request)
    app.add_url_rule('/', 'health', health)
    for blueprint in BLUEPRINTS:
        app.register_blueprint(blueprint)
    return app


def health():
    """Reports that the API is up and whether the database answers."""
    connected = get_services().store.is_connected()
    return jsonify({
        'message': 'Sanskrit Library API is running!',
        'timestamp': datetime.now(timezone.utc).isoformat(),
        'database': 'Connected' if connected else 'Disconnected',
    })


def _log_request() -> None:
    logger.debug("%s %s", request.method, request.path)
