"""
Test Telegram adapter - update demultiplexing and outbound channel
"""

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import requests

from dental_intake.channels import RecordingChannel, TelegramChannel
from dental_intake.commands import (
    Cancel,
    ChoiceSelected,
    Greet,
    NewEntry,
    TextReceived,
    decode_token,
    encode_token,
)
from dental_intake.contracts import ChoiceButton
from dental_intake.utils.conversation_modes import TokenKind
from dental_intake.utils.telegram_updates import demux_update


def message_update(text, user_id=777, chat_id=555):
    return {
        'update_id': 1,
        'message': {
            'message_id': 10,
            'from': {'id': user_id, 'first_name': 'Sari'},
            'chat': {'id': chat_id, 'type': 'private'},
            'text': text,
        },
    }


# ========================
# Tokens
# ========================

def test_token_round_trip_examples():
    assert encode_token(TokenKind.EDIT, 'tooth', 0, 'kondisiGigi') == 'edit:tooth:0:kondisiGigi'

    token = decode_token('field:kondisiGigi:karies')
    assert token.kind == TokenKind.FIELD
    assert token.args == ('kondisiGigi', 'karies')
    assert token.arg(1) == 'karies'
    assert token.arg(2) is None


def test_decode_rejects_unknown():
    assert decode_token('bogus:1') is None
    assert decode_token('') is None
    assert decode_token(None) is None


# ========================
# Demux
# ========================

def test_commands_map_to_events():
    assert demux_update(message_update('/start')).event == Greet('777')
    assert demux_update(message_update('/newpatient')).event == NewEntry('777')
    assert demux_update(message_update('/exit')).event == Cancel('777')
    assert demux_update(message_update('/start@DentalBot')).event == Greet('777')


def test_text_maps_to_text_event():
    demuxed = demux_update(message_update('  Ani  '))

    assert demuxed.event == TextReceived('777', '  Ani  ')
    assert demuxed.chat_id == 555
    assert demuxed.callback_query_id is None


def test_unknown_command_is_dropped():
    """Unknown slash commands never reach a field as text"""
    assert demux_update(message_update('/help')) is None
    assert demux_update(message_update('/hapus semua')) is None


def test_callback_query_maps_to_choice():
    update = {
        'update_id': 2,
        'callback_query': {
            'id': 'cb-1',
            'from': {'id': 777},
            'message': {'chat': {'id': 555}},
            'data': 'confirm:yes',
        },
    }

    demuxed = demux_update(update)

    assert demuxed.event == ChoiceSelected('777', 'confirm:yes')
    assert demuxed.chat_id == 555
    assert demuxed.callback_query_id == 'cb-1'


def test_unhandled_updates():
    assert demux_update({'update_id': 3, 'edited_message': {}}) is None
    assert demux_update({'message': {'from': {'id': 1}, 'sticker': {}}}) is None
    assert demux_update('not a dict') is None


# ========================
# TelegramChannel
# ========================

class MockResponse:
    def __init__(self, payload, status_error=None):
        self.payload = payload
        self.status_error = status_error

    def raise_for_status(self):
        if self.status_error is not None:
            raise self.status_error

    def json(self):
        return self.payload


class MockHTTP:
    """Mimics requests.Session.post"""

    def __init__(self, response=None, error=None):
        self.response = response or MockResponse({'ok': True, 'result': {}})
        self.error = error
        self.posts = []

    def post(self, url, json=None, timeout=None):
        self.posts.append((url, json, timeout))
        if self.error is not None:
            raise self.error
        return self.response


def test_send_prompt_posts_message():
    http = MockHTTP()
    channel = TelegramChannel('TOKEN', api_base='https://api.example', timeout=3, http=http)
    channel.remember_chat('777', 555)

    channel.send_prompt('777', 'Masukkan Nama Pasien:')

    url, payload, timeout = http.posts[0]
    assert url == 'https://api.example/botTOKEN/sendMessage'
    assert payload == {'chat_id': 555, 'text': 'Masukkan Nama Pasien:'}
    assert timeout == 3


def test_present_choices_builds_inline_keyboard():
    http = MockHTTP()
    channel = TelegramChannel('TOKEN', http=http)

    channel.present_choices('777', 'Pilih:', [ChoiceButton('Ya', 'confirm:yes'),
                                              ChoiceButton('Tidak', 'confirm:no')])

    _, payload, _ = http.posts[0]
    assert payload['chat_id'] == '777'
    assert payload['reply_markup'] == {'inline_keyboard': [
        [{'text': 'Ya', 'callback_data': 'confirm:yes'}],
        [{'text': 'Tidak', 'callback_data': 'confirm:no'}],
    ]}


def test_answer_callback():
    http = MockHTTP()
    TelegramChannel('TOKEN', http=http).answer_callback('cb-1')

    url, payload, _ = http.posts[0]
    assert url.endswith('/answerCallbackQuery')
    assert payload == {'callback_query_id': 'cb-1'}


def test_delivery_errors_never_raise():
    """Transport failures are logged, not surfaced"""
    TelegramChannel('TOKEN', http=MockHTTP(error=requests.ConnectionError("down"))).send_prompt('1', 'x')

    rejected = MockHTTP(response=MockResponse({'ok': False, 'description': 'chat not found'}))
    TelegramChannel('TOKEN', http=rejected).send_prompt('1', 'x')

    http_error = MockHTTP(response=MockResponse({}, status_error=requests.HTTPError("403")))
    TelegramChannel('TOKEN', http=http_error).present_choices('1', 'x', [])


def test_empty_token_rejected():
    try:
        TelegramChannel('')
        assert False, "Should have raised ValueError"
    except ValueError:
        pass


# ========================
# RecordingChannel
# ========================

def test_recording_channel():
    channel = RecordingChannel()
    channel.send_prompt('a', 'one')
    channel.present_choices('b', 'two', [ChoiceButton('Ya', 'repeat:yes')])

    assert channel.last.tokens == ['repeat:yes']
    assert [m.text for m in channel.for_identity('a')] == ['one']

    channel.clear()
    assert channel.last is None
