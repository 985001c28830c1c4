"""
NewFlow notification agent entrypoint.

Reads config from the environment, wires the store, delivery, expiry,
backend client and push channel into one Runtime, registers the Flask
blueprints, and serves the local API.
"""
import logging

from flask import Flask, jsonify

from newflow.api import NewFlowClient
from newflow.channel import NotificationWebSocket
from newflow.config import AgentConfig
from newflow.delivery import Delivery, DesktopChannel, PlyerBackend, PygamePlayer, SoundChannel
from newflow.expiry import ExpiryScheduler
from newflow.log_buffer import LOG_FORMAT, install_log_handler
from newflow.notifications import NotificationActions
from newflow.openapi_spec import build_spec
from newflow.patient_search import PatientSearch
from newflow.roles import RoleContext
from newflow.routes import logs as logs_bp
from newflow.routes import notifications as notifications_bp
from newflow.routes import patients as patients_bp
from newflow.routes import settings as settings_bp
from newflow.routes import status as status_bp
from newflow.routes.ws import sock
from newflow.state import EXTENSION_KEY, Runtime
from newflow.store import Store
from newflow.sync import NotificationService

log = logging.getLogger("newflow.agent")


# ── Runtime wiring ────────────────────────────────────────────

def build_runtime(config: AgentConfig) -> Runtime:
    store = Store()
    delivery = Delivery(
        sound=SoundChannel(player=PygamePlayer(), asset=config.sound_file),
        desktop=DesktopChannel(PlyerBackend()),
    )
    actions = NotificationActions(store, delivery)
    expiry = ExpiryScheduler(store, delay=config.expiry_seconds)
    expiry.start()

    client = NewFlowClient(config.api_url, token=config.token)
    header = {"Authorization": f"Bearer {config.token}"} if config.token else None
    channel = NotificationWebSocket(
        config.ws_url,
        header=header,
        reconnect_interval=config.reconnect_interval,
        max_reconnect_attempts=config.max_reconnect_attempts,
    )
    service = NotificationService(actions, client, channel)
    search = PatientSearch(client, RoleContext.for_role(config.role))
    return Runtime(config=config, store=store, actions=actions, service=service,
                   expiry=expiry, search=search)


# ── Flask app ─────────────────────────────────────────────────

def create_app(runtime: Runtime) -> Flask:
    app = Flask(__name__)
    app.extensions[EXTENSION_KEY] = runtime

    app.register_blueprint(notifications_bp.bp)
    app.register_blueprint(settings_bp.bp)
    app.register_blueprint(status_bp.bp)
    app.register_blueprint(logs_bp.bp)
    app.register_blueprint(patients_bp.bp)
    sock.init_app(app)

    @app.route("/openapi.json")
    def openapi_json():
        return jsonify(build_spec().to_dict())

    return app


def shutdown(runtime: Runtime):
    runtime.service.stop()
    runtime.expiry.shutdown()


# ── Main ──────────────────────────────────────────────────────

def main():
    logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
    install_log_handler()

    config = AgentConfig.from_env()
    logging.getLogger().setLevel(getattr(logging, config.log_level, logging.INFO))
    log.info("Starting notification agent against %s (role=%s)", config.api_url, config.role)

    runtime = build_runtime(config)
    # Settings decide whether the push channel opens at all.
    if not runtime.service.load_settings():
        runtime.service.apply_settings()
    runtime.service.load_notifications()

    app = create_app(runtime)
    try:
        app.run(host="0.0.0.0", port=config.listen_port, threaded=True)
    finally:
        shutdown(runtime)
        log.info("Agent stopped")


if __name__ == "__main__":
    main()
