"""Document groups persisted in ``files/document-groups.json``."""

import json
import threading
import uuid
from datetime import datetime, timezone
from pathlib import Path

from pydantic import ValidationError as PydanticValidationError

from shared.errors import NotFoundError, ValidationError
from shared.helper.HelperConfig import HelperConfig
from shared.helper.file_io import read_json, write_json_atomic
from shared.models.group import DocumentGroup
from shared.stores.FileStore import FileStore

GROUPS_FILE_NAME = "document-groups.json"


class GroupStore:
    """CRUD for document groups.

    ``documentCount`` is always recomputed from the uploaded files on read.
    Deleting a group only removes its record; uploaded files, indexes and
    conversation logs are left alone.
    """

    def __init__(self, helper_config: HelperConfig, file_store: FileStore, groups_path: Path | None = None):
        self.logging = helper_config.get_logger()
        self._file_store = file_store
        self._path = groups_path or helper_config.get_files_root() / GROUPS_FILE_NAME
        self._lock = threading.Lock()

    def _read(self) -> list[DocumentGroup]:
        try:
            raw = read_json(self._path)
        except (OSError, json.JSONDecodeError) as e:
            self.logging.error("Error reading groups file %s: %s. Resetting it.", self._path, e)
            raw = None
        if raw is None:
            write_json_atomic(self._path, {"groups": []})
            return []
        try:
            return [DocumentGroup.model_validate(g) for g in raw.get("groups", [])]
        except (AttributeError, PydanticValidationError) as e:
            self.logging.error("Invalid groups file %s: %s. Resetting it.", self._path, e)
            write_json_atomic(self._path, {"groups": []})
            return []

    def _write(self, groups: list[DocumentGroup]) -> None:
        write_json_atomic(self._path, {"groups": [g.to_wire() for g in groups]})

    def _with_count(self, group: DocumentGroup) -> DocumentGroup:
        return group.model_copy(update={"document_count": self._file_store.count_group_documents(group.guid)})

    ##########################################
    ############### OPERATIONS ###############
    ##########################################

    def list_groups(self) -> list[DocumentGroup]:
        with self._lock:
            groups = self._read()
        return [self._with_count(g) for g in groups]

    def get(self, guid: str) -> DocumentGroup:
        """
        Raises:
            NotFoundError: If no group has ``guid``.
        """
        for group in self.list_groups():
            if group.guid == guid:
                return group
        raise NotFoundError("Group not found", detail=guid)

    def create(self, name: str) -> tuple[DocumentGroup, bool]:
        """Create a group, or return the existing one with the same name (case-insensitive).

        Returns:
            tuple[DocumentGroup, bool]: The group and whether it was newly created.

        Raises:
            ValidationError: If ``name`` is empty.
        """
        name = (name or "").strip() if isinstance(name, str) else ""
        if not name:
            raise ValidationError("Name is required")
        with self._lock:
            groups = self._read()
            for group in groups:
                if group.name.lower() == name.lower():
                    return self._with_count(group), False
            group = DocumentGroup(
                guid=str(uuid.uuid4()),
                name=name,
                created_at=datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
                document_count=0,
            )
            groups.append(group)
            self._write(groups)
        self.logging.info("Created document group '%s' (%s)", name, group.guid)
        return group, True

    def rename(self, guid: str, name: str) -> DocumentGroup:
        """
        Raises:
            ValidationError: If ``name`` is empty.
            NotFoundError: If no group has ``guid``.
        """
        name = (name or "").strip()
        if not name:
            raise ValidationError("Missing name in request body")
        with self._lock:
            groups = self._read()
            for index, group in enumerate(groups):
                if group.guid == guid:
                    groups[index] = group.model_copy(update={"name": name})
                    self._write(groups)
                    break
            else:
                raise NotFoundError("Group not found", detail=guid)
        self.logging.info("Renamed document group %s to '%s'", guid, name)
        return self._with_count(groups[index])

    def delete(self, guid: str) -> None:
        """
        Raises:
            NotFoundError: If no group has ``guid``.
        """
        with self._lock:
            groups = self._read()
            remaining = [g for g in groups if g.guid != guid]
            if len(remaining) == len(groups):
                raise NotFoundError("Group not found", detail=guid)
            self._write(remaining)
        self.logging.info("Deleted document group %s", guid)
