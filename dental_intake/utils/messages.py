"""
Message Template Registry

Operator-facing text sent by the Dialogue Manager.

Template Text:
- MESSAGES maps a MessageID to a pattern string
- Placeholders use str.format() names ({name}, {label}, {number})
- render() is the only way templates are filled

Button labels for fixed choices (resume, confirm, repeat) live here too,
so the Dialogue Manager holds no literal operator text.
"""

from enum import Enum
from typing import Dict


class MessageID(str, Enum):
    """
    Template identifiers.

    Naming convention: <TOPIC>_<DETAIL>
    """
    ASK_OPERATOR_NAME = "ask_operator_name"
    WELCOME = "welcome"
    CONTINUE_SESSION = "continue_session"

    FIELD_PROMPT = "field_prompt"
    CHOICE_PROMPT = "choice_prompt"
    TOOTH_HEADER = "tooth_header"
    ASK_ADD_MORE_TEETH = "ask_add_more_teeth"

    SUMMARY_HEADER = "summary_header"
    SUMMARY_PATIENT = "summary_patient"
    SUMMARY_TOOTH = "summary_tooth"
    SUMMARY_EXAMINATION = "summary_examination"
    SUMMARY_QUESTION = "summary_question"

    SELECT_FIELD_TO_EDIT = "select_field_to_edit"
    SELECT_TOOTH_FIELD_TO_EDIT = "select_tooth_field_to_edit"
    EDIT_FIELD_PROMPT = "edit_field_prompt"
    EDIT_CHOICE_PROMPT = "edit_choice_prompt"

    SAVING = "saving"
    SUCCESS = "success"
    CANCELLED = "cancelled"

    ERROR_SAVE_FAILED = "error_save_failed"
    ERROR_NO_ACTIVE_SESSION = "error_no_active_session"
    ERROR_ALREADY_HAS_SESSION = "error_already_has_session"
    ERROR_GENERIC = "error_generic"


MESSAGES: Dict[MessageID, str] = {
    MessageID.ASK_OPERATOR_NAME: "Masukkan Nama Dokter Pemeriksa",
    MessageID.WELCOME: (
        "Hai dokter {name}, semangat kerjanya hari ini🤗!\n"
        "Ketik /newpatient untuk memulai pendataan."
    ),
    MessageID.CONTINUE_SESSION: "Anda memiliki input data yang belum selesai. Ingin melanjutkan?",

    MessageID.FIELD_PROMPT: "Masukkan {label}:",
    MessageID.CHOICE_PROMPT: "Pilih {label}:",
    MessageID.TOOTH_HEADER: "🦷 Gigi ke-{number}",
    MessageID.ASK_ADD_MORE_TEETH: "Apakah ada gigi lain yang mau ditambahkan?",

    MessageID.SUMMARY_HEADER: "📋 Ringkasan Data Pasien\n\nSilakan periksa data berikut:",
    MessageID.SUMMARY_PATIENT: "Data Pasien",
    MessageID.SUMMARY_TOOTH: "Gigi ke-{number}",
    MessageID.SUMMARY_EXAMINATION: "Pemeriksaan",
    MessageID.SUMMARY_QUESTION: "Apakah data sudah benar?",

    MessageID.SELECT_FIELD_TO_EDIT: "Pilih field yang ingin diubah:",
    MessageID.SELECT_TOOTH_FIELD_TO_EDIT: "Pilih field Gigi ke-{number} yang ingin diubah:",
    MessageID.EDIT_FIELD_PROMPT: "Masukkan {label} yang baru:",
    MessageID.EDIT_CHOICE_PROMPT: "Pilih {label} yang baru:",

    MessageID.SAVING: "Menyimpan data...",
    MessageID.SUCCESS: (
        "✅ Data berhasil disimpan!\n\n"
        "Ketik /newpatient untuk mendata pasien berikutnya."
    ),
    MessageID.CANCELLED: "❌ Input data dibatalkan. Data tidak disimpan.",

    MessageID.ERROR_SAVE_FAILED: "Data gagal disimpan. Silakan tekan Ya untuk mencoba lagi.",
    MessageID.ERROR_NO_ACTIVE_SESSION: "Tidak ada sesi aktif. Ketik /start untuk memulai.",
    MessageID.ERROR_ALREADY_HAS_SESSION: (
        "Anda sudah memiliki sesi aktif. Selesaikan atau gunakan /exit untuk membatalkan."
    ),
    MessageID.ERROR_GENERIC: "Terjadi kesalahan. Silakan coba lagi.",
}


# Fixed button labels
BUTTON_LABELS: Dict[str, str] = {
    'resume:continue': "Lanjutkan",
    'resume:restart': "Mulai Baru",
    'confirm:yes': "Ya",
    'confirm:no': "Tidak",
    'confirm:change': "Ubah",
    'repeat:yes': "Ya",
    'repeat:no': "Tidak",
    'edit:back': "⬅️ Kembali",
}


def render(message_id: MessageID, **values) -> str:
    """
    Fill a template.

    Args:
        message_id: Template identifier
        **values: Placeholder values

    Returns:
        str: Rendered text

    Raises:
        KeyError: If a placeholder value is missing
    """
    return MESSAGES[message_id].format(**values)
