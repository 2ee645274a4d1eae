"""Uploaded documents on disk. There is no file record, the directory tree is the source of truth."""

from datetime import datetime, timezone
from pathlib import Path

from shared.errors import NotFoundError, ValidationError
from shared.helper.HelperConfig import HelperConfig
from shared.helper.file_io import is_reserved, is_safe_id, safe_file_name
from shared.ingest.DocumentExtractor import file_type_for
from shared.models.group import UploadedFile, UploadItem

GROUPS_DIR = "groups"
# top level directories that are not conversation folders
NON_CONVERSATION_DIRS = {GROUPS_DIR, "conversations", "logs"}


class FileStore:
    """Stores uploads at deterministic locations below the files root.

    - ``groups/{groupId}/{name}`` for group uploads
    - ``{conversationId}/{groupId}/{name}`` for group uploads inside a conversation
    - ``{conversationId}/{name}`` for loose conversation files
    """

    def __init__(self, helper_config: HelperConfig, files_root: Path | None = None):
        self.logging = helper_config.get_logger()
        self._root = files_root or helper_config.get_files_root()

    ##########################################
    ################ GETTER ##################
    ##########################################

    def get_root(self) -> Path:
        return self._root

    def get_group_dir(self, group_id: str) -> Path:
        return self._root / GROUPS_DIR / group_id

    def get_conversation_dir(self, conversation_id: str) -> Path:
        return self._root / conversation_id

    def _check_id(self, value: str | None, label: str) -> None:
        if value is not None and not is_safe_id(value):
            raise ValidationError(f"Invalid {label} '{value}'")

    ##########################################
    ################ UPLOAD ##################
    ##########################################

    def save_uploads(self, group_id: str | None, conversation_id: str | None, files: list[UploadItem]) -> list[str]:
        """Write uploaded files to their deterministic location, replacing same-named files.

        Args:
            group_id (str | None): Target group. Required unless ``conversation_id`` is given.
            conversation_id (str | None): Target conversation.
            files (list[UploadItem]): The uploaded files.

        Returns:
            list[str]: Stored file names (sanitized).

        Raises:
            ValidationError: If there are no files, no target, or an id is invalid.
        """
        if not files:
            raise ValidationError("No files uploaded")
        if not group_id and not conversation_id:
            raise ValidationError("Document group ID is required")
        self._check_id(group_id, "group id")
        self._check_id(conversation_id, "conversation id")

        if conversation_id:
            target = self.get_conversation_dir(conversation_id)
            if group_id:
                target = target / group_id
        else:
            target = self.get_group_dir(group_id)
        target.mkdir(parents=True, exist_ok=True)

        saved: list[str] = []
        for item in files:
            name = safe_file_name(item.name)
            if is_reserved(Path(name)):
                raise ValidationError(f"File name '{item.name}' is reserved")
            (target / name).write_bytes(item.content)
            saved.append(name)
        self.logging.info("Saved %d file(s) to %s", len(saved), target.relative_to(self._root))
        return saved

    ##########################################
    ################# LIST ###################
    ##########################################

    def _file_info(self, path: Path, group_id: str | None = None, conversation_id: str | None = None) -> UploadedFile:
        stats = path.stat()
        return UploadedFile(
            name=path.name,
            path=path.relative_to(self._root).as_posix(),
            size=stats.st_size,
            last_modified=datetime.fromtimestamp(stats.st_mtime, tz=timezone.utc).isoformat().replace("+00:00", "Z"),
            group_id=group_id,
            conversation_id=conversation_id,
            type=file_type_for(path.name),
        )

    def _documents_in(self, directory: Path) -> list[Path]:
        if not directory.is_dir():
            return []
        return sorted(p for p in directory.iterdir() if p.is_file() and not is_reserved(p))

    def _conversation_dirs(self) -> list[Path]:
        if not self._root.is_dir():
            return []
        return sorted(
            d for d in self._root.iterdir()
            if d.is_dir() and d.name not in NON_CONVERSATION_DIRS and not d.name.startswith(".")
        )

    def list_group_documents(self, group_id: str) -> list[Path]:
        """Documents directly in ``groups/{group_id}``, the compile input for that group."""
        return self._documents_in(self.get_group_dir(group_id))

    def list_group_ids(self) -> list[str]:
        groups_dir = self._root / GROUPS_DIR
        if not groups_dir.is_dir():
            return []
        return sorted(d.name for d in groups_dir.iterdir() if d.is_dir())

    def list_conversation_documents(self, conversation_id: str) -> list[tuple[Path, str | None]]:
        """Loose files and group sub-folder files of a conversation, with their group id."""
        conv_dir = self.get_conversation_dir(conversation_id)
        found: list[tuple[Path, str | None]] = [(p, None) for p in self._documents_in(conv_dir)]
        if conv_dir.is_dir():
            for sub in sorted(d for d in conv_dir.iterdir() if d.is_dir()):
                found.extend((p, sub.name) for p in self._documents_in(sub))
        return found

    def list_files(self, group_id: str | None = None, conversation_id: str | None = None) -> list[UploadedFile]:
        """List uploaded files, optionally filtered by group and/or conversation."""
        self._check_id(group_id, "group id")
        self._check_id(conversation_id, "conversation id")
        files: list[UploadedFile] = []

        if conversation_id:
            for path, file_group in self.list_conversation_documents(conversation_id):
                if group_id is None or file_group == group_id:
                    files.append(self._file_info(path, group_id=file_group, conversation_id=conversation_id))
            return files

        if group_id:
            files.extend(self._file_info(p, group_id=group_id) for p in self.list_group_documents(group_id))
            for conv_dir in self._conversation_dirs():
                files.extend(
                    self._file_info(p, group_id=group_id, conversation_id=conv_dir.name)
                    for p in self._documents_in(conv_dir / group_id)
                )
            return files

        files.extend(self._file_info(p) for p in self._documents_in(self._root))
        for gid in self.list_group_ids():
            files.extend(self._file_info(p, group_id=gid) for p in self.list_group_documents(gid))
        for conv_dir in self._conversation_dirs():
            for path, file_group in self.list_conversation_documents(conv_dir.name):
                files.append(self._file_info(path, group_id=file_group, conversation_id=conv_dir.name))
        return files

    def count_group_documents(self, group_id: str) -> int:
        if not is_safe_id(group_id):
            return 0
        return len(self.list_files(group_id=group_id))

    ##########################################
    ################ DELETE ##################
    ##########################################

    def delete_file(self, relative_path: str) -> None:
        """Delete one uploaded file given its path relative to the files root.

        Raises:
            ValidationError: If the path leaves the files root or names a reserved file.
            NotFoundError: If there is no such file.
        """
        if not relative_path:
            raise ValidationError("Missing file param")
        root = self._root.resolve()
        target = (root / relative_path).resolve()
        if root not in target.parents:
            raise ValidationError(f"Invalid file path '{relative_path}'")
        if is_reserved(target) or target.parent.name == "conversations":
            raise ValidationError(f"File '{relative_path}' cannot be deleted")
        if not target.is_file():
            raise NotFoundError("File not found", detail=relative_path)
        target.unlink()
        self.logging.info("Deleted file %s", relative_path)
