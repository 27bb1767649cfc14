"""
Flask Web Application for the Dental Intake Bot

Telegram webhook endpoint in front of the Dialogue Manager.

Endpoints:
- POST /telegram/webhook: one Bot API update per request
- GET /health: liveness and session count
"""

from flask import Flask, request, jsonify
import logging

from dental_intake.channels import TelegramChannel
from dental_intake.config import STORAGE_JSON, Settings
from dental_intake.core.dialogue_manager import DialogueManager
from dental_intake.core.field_catalog import validate_catalog
from dental_intake.core.record_projector import RecordProjector, SequenceCounters
from dental_intake.core.session_store import SessionStore
from dental_intake.persistence import JSONFileSubmissionSink, SheetsSubmissionSink
from dental_intake.utils.telegram_updates import demux_update

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def build_sink(settings: Settings):
    """Storage backend selected by STORAGE_BACKEND."""
    if settings.storage_backend == STORAGE_JSON:
        return JSONFileSubmissionSink(str(settings.output_dir))

    settings.materialize_credentials()
    settings.require_sheets()
    return SheetsSubmissionSink.from_service_account_file(
        settings.google_application_credentials,
        settings.spreadsheet_id,
        settings.sheet_range,
    )


def build_manager(settings: Settings, channel) -> DialogueManager:
    """Wire store, sink, counters and projector (counters recovered once)."""
    validate_catalog()
    sink = build_sink(settings)
    counters = SequenceCounters(sink.recover_counters())
    return DialogueManager(
        store=SessionStore(),
        channel=channel,
        sink=sink,
        projector=RecordProjector(counters),
    )


def create_app(manager: DialogueManager, channel: TelegramChannel) -> Flask:
    """
    Build the Flask app around an already wired Dialogue Manager.

    Args:
        manager: Dialogue Manager receiving demultiplexed events
        channel: Telegram channel (chat ids, callback acknowledgement)
    """
    app = Flask(__name__)

    @app.route('/health')
    def health():
        return jsonify({
            'status': 'ok',
            'active_sessions': manager.store.count()
        })

    @app.route('/telegram/webhook', methods=['POST'])
    def telegram_webhook():
        update = request.get_json(silent=True)
        if update is None:
            return jsonify({'ok': False, 'error': 'Expected JSON body'}), 400

        demuxed = demux_update(update)
        if demuxed is None:
            return jsonify({'ok': True, 'handled': False})

        identity = demuxed.event.identity
        if demuxed.chat_id is not None:
            channel.remember_chat(identity, demuxed.chat_id)
        if demuxed.callback_query_id:
            channel.answer_callback(demuxed.callback_query_id)

        manager.handle(demuxed.event)
        return jsonify({'ok': True, 'handled': True})

    return app


if __name__ == '__main__':
    settings = Settings()

    channel = TelegramChannel(
        settings.require_transport(),
        api_base=settings.telegram_api_base,
        timeout=settings.request_timeout,
    )
    manager = build_manager(settings, channel)
    app = create_app(manager, channel)

    # Start Flask server
    print("\n" + "="*60)
    print("DENTAL INTAKE BOT - TELEGRAM WEBHOOK")
    print("="*60)
    print(f"\nStorage backend: {settings.storage_backend}")
    print("Point the Telegram webhook at: https://<host>/telegram/webhook")
    print("\nPress Ctrl+C to stop the server")
    print("="*60 + "\n")

    app.run(host='0.0.0.0', port=5000, threaded=True)
