"""
Field Catalog - Static field groups and choice sets for dental intake

Responsibilities:
- Define the three field groups in traversal / column order
- Define the enumerated choice sets backing single-choice fields
- Single source of truth for the persisted column layout

Design principles:
- Pure data plus pure lookup functions (no state)
- Defined once at import time, never mutated
- Any reordering changes the persisted wire format: bump CATALOG_VERSION

Groups:
- PATIENT_FIELDS: collected once per submission
- TOOTH_FIELDS: collected once per tooth (repeatable sub-record),
  with 'letakKaries' conditional on the chosen tooth condition
- EXAMINATION_FIELDS: collected once after the last tooth
"""

from typing import Dict, List, Optional, Tuple

from dental_intake.contracts import (
    ChoiceOption,
    FieldDefinition,
    FIELD_KIND_CHOICE,
)
from dental_intake.utils.conversation_modes import EditGroup

CATALOG_VERSION = "1.0.0"

# Stored in a conditional field that was skipped
NOT_APPLICABLE = "-"

# Key of the patient field pre-filled from the operator name
OPERATOR_FIELD_KEY = "dokterPemeriksa"

# Leading columns written before the catalog fields
LEADING_COLUMNS = ("No", "ID Rekam", "Tanggal", "Waktu")


# ========================
# Choice sets
# ========================

_DRIVE_IMAGE = "https://drive.google.com/uc?export=view&id={}"

KONDISI_GIGI_TYPES = (
    ChoiceOption('normal', 'Normal', _DRIVE_IMAGE.format('1Fde4xyCSRUwUwc8idwCPVnT_cAWrLOxf')),
    ChoiceOption('fraktur', 'Fraktur', _DRIVE_IMAGE.format('1RJpVw3u6c5I18TPQL3Tgy72ZzCTeIgpx')),
    ChoiceOption('sisa_akar', 'Sisa Akar', _DRIVE_IMAGE.format('1TYI7yWmxjo0RXjUbqNb7vT5yj5-XM4an')),
    ChoiceOption('tambalan', 'Tambalan', _DRIVE_IMAGE.format('1otLZga-Id3Tnn6OEuigG7fjoRxnfW_1X')),
    ChoiceOption('gigi_hilang', 'Gigi Hilang', _DRIVE_IMAGE.format('1AwqwpS9dCV1XwCVjhYa8WRzQQXizSIhm')),
    ChoiceOption('impaksi', 'Impaksi', _DRIVE_IMAGE.format('1it1pkXlMpJstpGdHVPn49lKKhnLAKuQB')),
    ChoiceOption('gigi_sehat', 'Gigi Sehat', _DRIVE_IMAGE.format('17mvnw9AsNH9pcIFnM_Jbv8SNJQ13G8Fk')),
    # Caries carries no image of its own; the caries location image is used
    ChoiceOption('karies', 'Karies', None, requires=('letakKaries',)),
)

KARIES_TYPES = (
    ChoiceOption('D', 'D-car', _DRIVE_IMAGE.format('1RUcHKcumJLI33BdEI1NAmYQoRJYnV-hI')),
    ChoiceOption('L', 'L-car', _DRIVE_IMAGE.format('1YqkM3QxMjgAX-jj2ud3DutY8O0CMty5x')),
    ChoiceOption('M', 'M-car', _DRIVE_IMAGE.format('1B0-vG7584zjxlM0EMr3brUC6o-Ma4u-M')),
    ChoiceOption('O', 'O-car', _DRIVE_IMAGE.format('18tO2WkHWCwIUr09oDXY9x0sIQVSBJ2W0')),
    ChoiceOption('V', 'V-car', _DRIVE_IMAGE.format('1qg_M5fEU4NX6vG8vZLyCIo9dC_pTdnPt')),
)

REKOMENDASI_PERAWATAN = (
    ChoiceOption('cabut', 'Cabut gigi'),
    ChoiceOption('saluran_akar', 'Perawatan saluran akar'),
    ChoiceOption('tambal', 'Tambal gigi'),
    ChoiceOption('scalling', 'Scalling'),
    ChoiceOption('odontektomi', 'Odontektomi'),
    ChoiceOption('dhe', 'DHE'),
)

OKLUSI_TYPES = (
    ChoiceOption('normal_bite', 'Normal Bite'),
    ChoiceOption('cross_bite', 'Cross Bite'),
    ChoiceOption('steep_bite', 'Steep Bite'),
)

TORUS_PALATINUS_TYPES = (
    ChoiceOption('tidak_ada', 'Tidak Ada'),
    ChoiceOption('kecil', 'Kecil'),
    ChoiceOption('sedang', 'Sedang'),
    ChoiceOption('besar', 'Besar'),
    ChoiceOption('multiple', 'Multiple'),
)

TORUS_MANDIBULARIS_TYPES = (
    ChoiceOption('tidak_ada', 'Tidak Ada'),
    ChoiceOption('kiri', 'Kiri'),
    ChoiceOption('kanan', 'Kanan'),
    ChoiceOption('kedua_sisi', 'Kedua Sisi'),
)

PALATUM_TYPES = (
    ChoiceOption('dalam', 'Dalam'),
    ChoiceOption('sedang', 'Sedang'),
    ChoiceOption('rendah', 'Rendah'),
)

CHOICE_SETS: Dict[str, Tuple[ChoiceOption, ...]] = {
    'kondisi_gigi': KONDISI_GIGI_TYPES,
    'letak_karies': KARIES_TYPES,
    'rekomendasi_perawatan': REKOMENDASI_PERAWATAN,
    'oklusi': OKLUSI_TYPES,
    'torus_palatinus': TORUS_PALATINUS_TYPES,
    'torus_mandibularis': TORUS_MANDIBULARIS_TYPES,
    'palatum': PALATUM_TYPES,
}


# ========================
# Field groups
# ========================

PATIENT_FIELDS: Tuple[FieldDefinition, ...] = (
    FieldDefinition('namaPasien', 'Nama Pasien'),
    FieldDefinition('nik', 'NIK / No. RM'),
    FieldDefinition('jenisKelamin', 'Jenis Kelamin'),
    FieldDefinition('usia', 'Usia'),
    FieldDefinition('golonganDarah', 'Golongan Darah'),
    FieldDefinition('alamat', 'Alamat'),
    FieldDefinition('noTelepon', 'No. Telepon'),
    FieldDefinition(OPERATOR_FIELD_KEY, 'Dokter Pemeriksa'),
)

TOOTH_FIELDS: Tuple[FieldDefinition, ...] = (
    FieldDefinition('gigiDikeluhkan', 'Gigi yang Dikeluhkan'),
    FieldDefinition('kondisiGigi', 'Kondisi Gigi', FIELD_KIND_CHOICE, choice_set='kondisi_gigi'),
    FieldDefinition('letakKaries', 'Letak Karies', FIELD_KIND_CHOICE, conditional=True,
                    choice_set='letak_karies'),
    FieldDefinition('rekomendasiPerawatan', 'Rekomendasi Perawatan', FIELD_KIND_CHOICE,
                    choice_set='rekomendasi_perawatan'),
)

EXAMINATION_FIELDS: Tuple[FieldDefinition, ...] = (
    FieldDefinition('oklusi', 'Oklusi', FIELD_KIND_CHOICE, choice_set='oklusi'),
    FieldDefinition('torusPalatinus', 'Torus Palatinus', FIELD_KIND_CHOICE,
                    choice_set='torus_palatinus'),
    FieldDefinition('torusMandibularis', 'Torus Mandibularis', FIELD_KIND_CHOICE,
                    choice_set='torus_mandibularis'),
    FieldDefinition('palatum', 'Palatum', FIELD_KIND_CHOICE, choice_set='palatum'),
    FieldDefinition('diastema', 'Diastema'),
    FieldDefinition('gigiAnomali', 'Gigi Anomali'),
    FieldDefinition('skorD', 'D (Decay)'),
    FieldDefinition('skorM', 'M (Missing)'),
    FieldDefinition('skorF', 'F (Filled)'),
    FieldDefinition('skorDMF', 'Skor DMF'),
)

FIELD_GROUPS: Dict[EditGroup, Tuple[FieldDefinition, ...]] = {
    EditGroup.PATIENT: PATIENT_FIELDS,
    EditGroup.TOOTH: TOOTH_FIELDS,
    EditGroup.EXAMINATION: EXAMINATION_FIELDS,
}


# ========================
# Lookups
# ========================

def get_field(group: EditGroup, field_key: str) -> Optional[FieldDefinition]:
    """
    Find a field definition by key within a group.

    Args:
        group: Field group to search
        field_key: Field key

    Returns:
        FieldDefinition or None if the key is not in the group
    """
    for field_def in FIELD_GROUPS[group]:
        if field_def.key == field_key:
            return field_def
    return None


def get_choice_set(field_def: FieldDefinition) -> Tuple[ChoiceOption, ...]:
    """
    Options backing a single-choice field.

    Raises:
        ValueError: If the field is free text or names an unknown set
    """
    if not field_def.is_choice:
        raise ValueError(f"Field '{field_def.key}' is not a choice field")
    if field_def.choice_set not in CHOICE_SETS:
        raise ValueError(f"Unknown choice set '{field_def.choice_set}' for '{field_def.key}'")
    return CHOICE_SETS[field_def.choice_set]


def find_option(field_def: FieldDefinition, option_key: str) -> Optional[ChoiceOption]:
    """Option of a choice field by key, or None."""
    for option in get_choice_set(field_def):
        if option.key == option_key:
            return option
    return None


def find_option_by_label(field_def: FieldDefinition, label: str) -> Optional[ChoiceOption]:
    """
    Option of a choice field whose label equals a stored value.

    Used at projection time to recover metadata (image reference) from
    the stored label. Returns None for free-text fields.
    """
    if not field_def.is_choice:
        return None
    for option in get_choice_set(field_def):
        if option.label == label:
            return option
    return None


def column_headers() -> List[str]:
    """Header row matching the persisted column order."""
    headers = list(LEADING_COLUMNS)
    for group in (PATIENT_FIELDS, TOOTH_FIELDS, EXAMINATION_FIELDS):
        headers.extend(field_def.label for field_def in group)
    return headers


def validate_catalog() -> None:
    """
    Check catalog invariants.

    - Keys unique within each group
    - Choice fields reference known choice sets
    - Every 'requires' entry names a conditional field of the tooth group

    Raises:
        ValueError: On the first violated invariant
    """
    for group, fields in FIELD_GROUPS.items():
        keys = [field_def.key for field_def in fields]
        duplicates = {key for key in keys if keys.count(key) > 1}
        if duplicates:
            raise ValueError(f"Duplicate {group.value} field keys: {sorted(duplicates)}")

        for field_def in fields:
            if field_def.is_choice:
                get_choice_set(field_def)

    conditional_keys = {f.key for f in TOOTH_FIELDS if f.conditional}
    for field_def in TOOTH_FIELDS:
        if not field_def.is_choice:
            continue
        for option in get_choice_set(field_def):
            unknown = set(option.requires) - conditional_keys
            if unknown:
                raise ValueError(
                    f"Option '{option.key}' of '{field_def.key}' requires "
                    f"non-conditional fields {sorted(unknown)}"
                )
