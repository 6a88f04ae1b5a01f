# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Parsers for pasted student lists.

Three paste shapes are understood:
- email lists: one or more emails per line, separated by commas
- name lists: one student per line, "Last, First" or "Last First ..."
  with an optional embedded email
- table pastes: a JSON array, or the institutional table copied as
  vertical blocks of six lines (last name, first name, DNI, birth date,
  phone, email)
"""

import json
import re

from src.models.roster import ParsedStudent
from src.utils.email import find_email, looks_like_email, normalize_emails

_EMAIL_SEPARATORS = re.compile(r"[\n,]+")
_SPACES = re.compile(r"\s+")

TABLE_HEADERS = frozenset(
    {
        "Apellido/s",
        "Nombre/s",
        "DNI/Pasaporte",
        "Fecha de Nacim.",
        "Teléfono",
        "Correo Electrónico",
    }
)
TABLE_BLOCK_SIZE = 6


def parse_email_list(text: str) -> list[str]:
    """Split a pasted email list into normalized, unique emails.

    Values without "@" are dropped.
    """
    candidates = [part for part in _EMAIL_SEPARATORS.split(text or "") if looks_like_email(part)]
    return normalize_emails(candidates)


def parse_name_list(text: str) -> list[ParsedStudent]:
    """Parse one student per non-blank line.

    An embedded email is pulled out first. What remains is read as
    "Last, First" when it has a comma, otherwise the first word is the
    last name and the rest the first name.
    """
    students: list[ParsedStudent] = []
    for line in (text or "").split("\n"):
        if not line.strip():
            continue

        clean = line.strip()
        email = find_email(clean) or ""
        if email:
            clean = clean.replace(email, "", 1).strip()
        clean = _SPACES.sub(" ", clean)

        if "," in clean:
            last, _, first = clean.partition(",")
            last_name, first_name = last.strip(), first.replace(",", " ").strip()
        else:
            parts = clean.split(" ")
            if len(parts) >= 2:
                last_name, first_name = parts[0], " ".join(parts[1:])
            else:
                last_name, first_name = clean, ""

        students.append(
            ParsedStudent(
                email=email or None,
                last_name=last_name or None,
                first_name=first_name or None,
                original=line,
            )
        )
    return students


def parse_table_paste(text: str) -> list[ParsedStudent]:
    """Parse a JSON array or a vertical six-line table paste.

    JSON items may use English or Spanish keys (nombres, apellidos,
    correo). If the text is not a usable JSON array, it is read as
    blocks of six lines with header lines removed; a trailing partial
    block is ignored.
    """
    stripped = (text or "").strip()
    if not stripped:
        return []

    if stripped[0] in "[{":
        students = _parse_json_rows(stripped)
        if students:
            return students

    lines = [line.strip() for line in stripped.split("\n")]
    lines = [line for line in lines if line and line not in TABLE_HEADERS]

    students = []
    for start in range(0, len(lines) - TABLE_BLOCK_SIZE + 1, TABLE_BLOCK_SIZE):
        last, first, dni, birth, phone, email = lines[start : start + TABLE_BLOCK_SIZE]
        students.append(
            ParsedStudent(
                last_name=last,
                first_name=first,
                dni=dni,
                birth_date=birth,
                phone=phone,
                email=email,
                original=f"{last} {first} ({email})",
            )
        )
    return students


def _parse_json_rows(text: str) -> list[ParsedStudent]:
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        return []
    if not isinstance(data, list):
        return []

    students = []
    for item in data:
        if not isinstance(item, dict):
            continue
        students.append(
            ParsedStudent(
                first_name=item.get("first_name") or item.get("nombres") or None,
                last_name=item.get("last_name") or item.get("apellidos") or None,
                email=item.get("email") or item.get("correo") or None,
                dni=item.get("dni") or None,
                phone=item.get("phone") or item.get("telefono") or None,
                birth_date=item.get("birth_date") or item.get("fecha_nacimiento") or None,
                original=json.dumps(item, ensure_ascii=False),
            )
        )
    return students
