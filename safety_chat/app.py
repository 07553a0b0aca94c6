import sys
import logging
import argparse
from datetime import datetime

from flask import Flask, request, jsonify
from flask_cors import CORS
from flask_socketio import SocketIO

from .config import load_config
from .hub import RelayHub
from .notifier import EmergencyNotifier

logger = logging.getLogger(__name__)

HUB_KEY = "safety_chat_hub"


# FLASK APP----------------------------------
def create_app(config=None, notifier=None):
    """Build the Flask app, its Socket.IO server and the relay hub.

    Returns ``(app, socketio)``; the hub lives in ``app.extensions["safety_chat_hub"]``.
    """
    if config is None:
        config = load_config()

    app = Flask(__name__)
    CORS(app, origins=config["CLIENT_URL"])
    socketio = SocketIO(
        app,
        cors_allowed_origins=config["CLIENT_URL"],
        async_mode="threading",
    )

    def emit(event, data, to=None):
        socketio.emit(event, data, to=to)

    if notifier is None:
        notifier = EmergencyNotifier.from_config(config)
    hub = RelayHub.from_config(emit, config, notifier=notifier)
    app.extensions[HUB_KEY] = hub
    app.config["SAFETY_CHAT"] = config

    @app.route("/")
    def home():
        return "Safety Chat Server is running", 200

    # Health check endpoint
    @app.route("/health", methods=["GET"])
    def health_check():
        return jsonify({
            "success": True,
            "status": "healthy",
            "timestamp": datetime.now().isoformat(),
            **hub.stats(),
        }), 200

    # -------------------- SOCKET EVENTS --------------
    @socketio.on("connect")
    def handle_connect(auth=None):
        hub.connect(request.sid)

    @socketio.on("register")
    def handle_register(data=None):
        hub.register(request.sid, data)

    @socketio.on("sendMessage")
    def handle_send_message(data=None):
        hub.send_message(request.sid, data)

    @socketio.on("updatePresence")
    def handle_update_presence(data=None):
        hub.update_presence(request.sid)

    @socketio.on("disconnect")
    def handle_disconnect(reason=None):
        hub.disconnect(request.sid)

    return app, socketio


def get_hub(app) -> RelayHub:
    return app.extensions[HUB_KEY]


# ENTRY POINT----------------------------------
def parse_args(argv=None, config=None):
    config = config or {}
    parser = argparse.ArgumentParser(description="Safety Chat real-time relay server")
    parser.add_argument("--host", default=config.get("HOST", "0.0.0.0"))
    parser.add_argument("--port", type=int, default=config.get("PORT", 3001))
    parser.add_argument("--log-level", default=config.get("LOG_LEVEL", "INFO"))
    return parser.parse_args(argv)


def main(argv=None):
    config = load_config()
    args = parse_args(argv, config)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app, socketio = create_app(config)
    hub = get_hub(app)
    hub.start()
    logger.info(f"Server running on port {args.port}")
    try:
        socketio.run(app, host=args.host, port=args.port, allow_unsafe_werkzeug=True)
    except OSError as e:
        logger.error(f"Could not start server on {args.host}:{args.port}: {e}")
        return 1
    except SystemExit as e:
        # werkzeug exits on its own when the port cannot be bound
        logger.error(f"Could not start server on {args.host}:{args.port} (exit code {e.code})")
        return e.code if isinstance(e.code, int) and e.code else 1
    finally:
        hub.stop()
    return 0


if __name__ == "__main__":
    sys.exit(main())
