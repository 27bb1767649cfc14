"""
Console Test Harness for the Dental Intake Dialogue Manager

Drives the same controller as the webhook, without Telegram.
Buttons are printed as a numbered list; type the number to press one.
Commands: /start, /newpatient, /exit. Type 'quit' to leave the harness.
"""

import logging
import sys

from dental_intake.channels import RecordingChannel
from dental_intake.commands import ChoiceSelected, TextReceived
from dental_intake.config import Settings
from dental_intake.core.dialogue_manager import DialogueManager
from dental_intake.core.record_projector import RecordProjector, SequenceCounters
from dental_intake.core.session_store import SessionStore
from dental_intake.persistence import JSONFileSubmissionSink
from dental_intake.utils.telegram_updates import COMMANDS

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

CONSOLE_IDENTITY = "console"
QUIT_COMMANDS = {"quit", "stop"}


def print_separator(char="=", length=60):
    """Print a separator line"""
    print(char * length)


def print_messages(messages):
    """Print outbound messages; returns the buttons of the last one"""
    buttons = []
    for message in messages:
        print(f"\nBot: {message.text}")
        buttons = message.buttons
        for number, button in enumerate(buttons, start=1):
            print(f"  [{number}] {button.label}")
    return buttons


def to_event(user_input, buttons):
    """Map console input to an inbound event"""
    command = COMMANDS.get(user_input.lower())
    if command is not None:
        return command(identity=CONSOLE_IDENTITY)

    if buttons and user_input.isdigit() and 1 <= int(user_input) <= len(buttons):
        return ChoiceSelected(identity=CONSOLE_IDENTITY, token=buttons[int(user_input) - 1].token)

    return TextReceived(identity=CONSOLE_IDENTITY, text=user_input)


def main():
    """Run console harness"""
    print_separator()
    print("DENTAL INTAKE - CONSOLE TEST")
    print_separator()

    settings = Settings()
    channel = RecordingChannel()
    sink = JSONFileSubmissionSink(str(settings.output_dir))
    dm = DialogueManager(
        store=SessionStore(),
        channel=channel,
        sink=sink,
        projector=RecordProjector(SequenceCounters(sink.recover_counters())),
    )

    print(f"\nSubmissions are written to: {settings.output_dir}")
    print("Type /start to begin, 'quit' to leave\n")

    buttons = []
    while True:
        try:
            user_input = input("> ")

            if user_input.strip().lower() in QUIT_COMMANDS:
                break

            channel.clear()
            dm.handle(to_event(user_input.strip() if user_input.startswith('/') else user_input, buttons))

            if channel.messages:
                buttons = print_messages(channel.messages)
            print()

        except (KeyboardInterrupt, EOFError):
            print("\n\nInterrupted by user")
            break

    print_separator()
    print("Console test complete")
    print_separator()
    return 0


if __name__ == '__main__':
    sys.exit(main())
