"""Descriptions document stored as a JSON file."""

import json
from pathlib import Path
from typing import Union

from pydantic import ValidationError

from .errors import ConfigError, StorageError
from .models import DescriptionDocument


class DescriptionSource:
    """Where Reload reads the document from and where edits are written."""

    def load(self) -> DescriptionDocument:
        raise NotImplementedError

    def save(self, document: DescriptionDocument) -> None:
        raise NotImplementedError


class DescriptionFile(DescriptionSource):
    """Loads and saves the descriptions document as JSON."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def load(self) -> DescriptionDocument:
        """Read and parse the document. Raises ConfigError on any problem."""
        try:
            raw = self.path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise ConfigError(f"Failed to read configuration file {self.path}: {e}") from e
        try:
            return DescriptionDocument.model_validate_json(raw)
        except ValidationError as e:
            raise ConfigError(f"Failed to parse configuration file {self.path}: {e}") from e

    def save(self, document: DescriptionDocument) -> None:
        """Write the document with an atomic replace."""
        temp_file = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            with open(temp_file, "w", encoding="utf-8") as f:
                json.dump(document.model_dump(mode="json"), f, indent=2, ensure_ascii=False)
                f.write("\n")
            temp_file.replace(self.path)
        except OSError as e:
            raise StorageError(f"Failed to save {self.path}: {e}") from e

    def exists(self) -> bool:
        return self.path.exists()
