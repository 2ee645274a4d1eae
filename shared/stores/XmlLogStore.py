"""Append-only per-conversation XML logs."""

import re
import threading
import time
import uuid
import weakref
import xml.etree.ElementTree as ET
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Generic, TypeVar

from shared.errors import ValidationError
from shared.helper.HelperConfig import HelperConfig
from shared.helper.file_io import is_safe_id, write_text_atomic

T = TypeVar("T")

CONVERSATIONS_DIR = "conversations"
XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>\n'

# characters XML 1.0 cannot represent
_INVALID_XML_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\ufffe\uffff]")


def clean_xml_text(value: str) -> str:
    return _INVALID_XML_CHARS.sub("", value)


def now_ms() -> int:
    return int(time.time() * 1000)


class XmlLogStore(ABC, Generic[T]):
    """One XML file per conversation under ``files/conversations``.

    Appends are read-modify-write. They are serialized per conversation id with
    a process-local lock and the file is replaced atomically, so concurrent
    appends to one conversation never lose an entry and readers never see a
    partial file.
    """

    # an entry lives only while some append holds the lock
    _locks: weakref.WeakValueDictionary[str, threading.Lock] = weakref.WeakValueDictionary()
    _locks_guard = threading.Lock()

    def __init__(self, helper_config: HelperConfig, base_dir: Path | None = None):
        self.logging = helper_config.get_logger()
        self._base_dir = base_dir or helper_config.get_files_root() / CONVERSATIONS_DIR

    ##########################################
    ################ GETTER ##################
    ##########################################

    @abstractmethod
    def _get_file_suffix(self) -> str:
        """Suffix appended to the conversation id, e.g. ".xml" or "-debug.xml"."""
        pass

    @abstractmethod
    def _get_root_tag(self) -> str:
        pass

    @abstractmethod
    def _get_entry_tag(self) -> str:
        pass

    def get_path(self, conversation_id: str) -> Path:
        if not is_safe_id(conversation_id):
            raise ValidationError(f"Invalid conversation id '{conversation_id}'")
        return self._base_dir / f"{conversation_id}{self._get_file_suffix()}"

    def _get_lock(self, path: Path) -> threading.Lock:
        key = str(path)
        with self._locks_guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    ##########################################
    ############# (DE)SERIALIZE ##############
    ##########################################

    @abstractmethod
    def _entry_to_element(self, entry: T) -> ET.Element:
        pass

    @abstractmethod
    def _element_to_entry(self, element: ET.Element) -> T:
        pass

    @abstractmethod
    def _complete(self, entry: T) -> T:
        """Return ``entry`` with id and timestamp filled in."""
        pass

    def _parse(self, path: Path) -> list[T]:
        """
        Raises:
            ET.ParseError: If the file is not well-formed XML.
        """
        if not path.exists():
            return []
        root = ET.parse(path).getroot()
        return [self._element_to_entry(el) for el in root.findall(self._get_entry_tag())]

    def _render(self, entries: list[T]) -> str:
        root = ET.Element(self._get_root_tag())
        for entry in entries:
            root.append(self._entry_to_element(entry))
        ET.indent(root, space="  ")
        # parsers normalize a raw \r to \n, only the character reference survives
        body = ET.tostring(root, encoding="unicode").replace("\r", "&#13;")
        return XML_DECLARATION + body + "\n"

    ##########################################
    ############### OPERATIONS ###############
    ##########################################

    def read_all(self, conversation_id: str) -> list[T]:
        """Return all entries in append order. Missing or unreadable file → empty list."""
        path = self.get_path(conversation_id)
        try:
            return self._parse(path)
        except (ET.ParseError, ValueError) as e:
            self.logging.error("Error reading %s for conversation %s: %s", path.name, conversation_id, e)
            return []

    def append(self, conversation_id: str, entry: T) -> T:
        """Append ``entry``, assigning id and timestamp when they are missing.

        Returns:
            T: The stored entry.
        """
        path = self.get_path(conversation_id)
        entry = self._complete(entry)
        with self._get_lock(path):
            try:
                entries = self._parse(path)
            except (ET.ParseError, ValueError) as e:
                # keep the broken file for inspection instead of overwriting it
                backup = path.with_name(f"{path.name}.corrupt-{now_ms()}")
                path.replace(backup)
                self.logging.error("Log %s is corrupt (%s), moved to %s and starting a new one", path.name, e, backup.name)
                entries = []
            entries.append(entry)
            write_text_atomic(path, self._render(entries))
        return entry

    @staticmethod
    def new_id() -> str:
        return str(uuid.uuid4())
