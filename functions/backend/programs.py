"""
Programs (family events) management.
"""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass
from datetime import date, datetime, timezone
from enum import StrEnum
from typing import Any, List, Optional

from dacite import Config, from_dict

from backend.db import DbClient
from backend.storage import StorageClient

logger = logging.getLogger(__name__)

PROGRAMS_COLLECTION = "programs"
PROGRAM_IMAGES_PREFIX = "program_images/"

_UNSAFE_FILENAME_CHARS = re.compile(r"[^a-zA-Z0-9.]")


class ProgramType(StrEnum):
    WEDDING = "Wedding"
    BIRTHDAY = "Birthday"
    ANNIVERSARY = "Anniversary"
    GET_TOGETHER = "Get Together"
    MEETING = "Meeting"
    OTHER = "Other"


class ProgramStatus(StrEnum):
    UPCOMING = "Upcoming"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


@dataclass
class Program:
    id: str
    title: str
    type: ProgramType
    date: str
    time: str
    location: str
    description: str
    status: ProgramStatus
    visibility: bool
    image_url: Optional[str] = None
    created_at: Optional[Any] = None


# Values a new program form starts with.
PROGRAM_DEFAULTS = {
    "title": "",
    "type": ProgramType.GET_TOGETHER.value,
    "date": "",
    "time": "",
    "location": "",
    "description": "",
    "status": ProgramStatus.UPCOMING.value,
    "visibility": True,
}

_DOCUMENT_KEYS = {"image_url": "imageUrl", "created_at": "createdAt"}


def _coerce_enum(enum_cls, value, default):
    try:
        return enum_cls(value)
    except ValueError:
        return default


def program_from_document(doc_id: str, data: dict) -> Program:
    # Stored nulls fall back to the form defaults.
    values = {
        **PROGRAM_DEFAULTS,
        **{key: value for key, value in (data or {}).items() if value is not None},
    }
    values["type"] = _coerce_enum(ProgramType, values.get("type"), ProgramType.OTHER)
    values["status"] = _coerce_enum(
        ProgramStatus, values.get("status"), ProgramStatus.UPCOMING
    )
    for attr, key in _DOCUMENT_KEYS.items():
        values[attr] = values.pop(key, None) or None
    values["id"] = doc_id
    return from_dict(
        data_class=Program,
        data=values,
        config=Config(cast=[ProgramType, ProgramStatus], check_types=False),
    )


def program_fields_to_document(fields: dict) -> dict:
    """Maps editable attributes to document keys, dropping anything unknown."""
    document = {}
    for attr, value in fields.items():
        if attr in PROGRAM_DEFAULTS:
            document[attr] = value.value if isinstance(value, StrEnum) else value
        elif attr in _DOCUMENT_KEYS:
            document[_DOCUMENT_KEYS[attr]] = value
    return document


def _date_sort_key(program: Program) -> float:
    try:
        return date.fromisoformat(program.date).toordinal()
    except (TypeError, ValueError):
        return float("-inf")


def format_time_12h(time_24: str) -> str:
    """Formats "HH:MM" as a 12-hour clock time, e.g. "14:05" -> "2:05 PM"."""
    if not time_24:
        return ""
    hours, _, minutes = time_24.partition(":")
    if not hours.isdigit():
        return time_24
    h = int(hours)
    ampm = "PM" if h >= 12 else "AM"
    return f"{h % 12 or 12}:{minutes} {ampm}"


def search_programs(programs: List[Program], query: Optional[str]) -> List[Program]:
    if not query or not query.strip():
        return programs
    needle = query.lower()
    return [
        program
        for program in programs
        if needle in program.title.lower() or needle in program.location.lower()
    ]


class ProgramService:
    def __init__(
        self,
        db: DbClient,
        storage: StorageClient,
        collection: str = PROGRAMS_COLLECTION,
        image_url_expires_in: int = 3600,
    ):
        self.db = db
        self.storage = storage
        self.collection = collection
        self.image_url_expires_in = image_url_expires_in

    def list_programs(self) -> List[Program]:
        """Returns all programs, newest date first."""
        programs = [
            program_from_document(doc_id, data)
            for doc_id, data in self.db.list_documents(self.collection)
        ]
        programs.sort(key=_date_sort_key, reverse=True)
        return programs

    def get_program(self, program_id: str) -> Optional[Program]:
        data = self.db.get_document(self.collection, program_id)
        if data is None:
            return None
        return program_from_document(program_id, data)

    def create_program(self, fields: dict) -> Program:
        document = {**PROGRAM_DEFAULTS, **program_fields_to_document(fields)}
        document["createdAt"] = datetime.now(timezone.utc).isoformat()
        program_id = self.db.add_document(self.collection, document)
        logger.info("Created program %s", program_id)
        return program_from_document(program_id, document)

    def update_program(self, program_id: str, fields: dict) -> Program:
        self.db.update_document(
            self.collection, program_id, program_fields_to_document(fields)
        )
        return self.get_program(program_id)

    def delete_program(self, program_id: str) -> None:
        self.db.delete_document(self.collection, program_id)
        logger.info("Deleted program %s", program_id)

    def toggle_visibility(self, program_id: str) -> Program:
        program = self.get_program(program_id)
        if program is None:
            raise LookupError(program_id)
        self.db.update_document(
            self.collection, program_id, {"visibility": not program.visibility}
        )
        return self.get_program(program_id)

    def upload_program_image(
        self, filename: str, data: bytes, content_type: str = "image/jpeg"
    ) -> str:
        """Stores a program photo under a timestamped name and returns its download URL."""
        safe_name = _UNSAFE_FILENAME_CHARS.sub("_", filename or "image")
        path = f"{PROGRAM_IMAGES_PREFIX}{int(time.time() * 1000)}_{safe_name}"
        self.storage.upload_bytes(path, data, content_type=content_type)
        return self.storage.get_download_url(path, expires_in=self.image_url_expires_in)
