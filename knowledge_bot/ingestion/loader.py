"""Reader for JSON knowledge files."""

import json
from pathlib import Path

from pydantic import ValidationError as PydanticValidationError

from knowledge_bot.exceptions import DocumentError, ErrorCode
from knowledge_bot.ingestion.models import KnowledgeDocument


class JsonKnowledgeLoader:
    """Loads knowledge documents from a JSON file.

    The file holds either one ``{"title", "url", "content"}`` object or a
    list of such objects.
    """

    def __init__(self, encoding: str = "utf-8") -> None:
        self.encoding = encoding

    def load(self, source: str | Path) -> list[KnowledgeDocument]:
        """Read every document in ``source``.

        Raises:
            DocumentError: If the file is missing, unreadable or malformed.
        """
        path = Path(source)

        if not path.exists():
            raise DocumentError(
                f"File not found: {path}",
                code=ErrorCode.DOCUMENT_NOT_FOUND,
                details={"path": str(path)},
            )

        if not path.is_file():
            raise DocumentError(
                f"Not a file: {path}",
                code=ErrorCode.DOCUMENT_PARSE_ERROR,
                details={"path": str(path)},
            )

        try:
            raw = json.loads(path.read_text(encoding=self.encoding))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise DocumentError(
                f"Failed to parse knowledge file: {path}",
                code=ErrorCode.DOCUMENT_PARSE_ERROR,
                details={"path": str(path), "error": str(e)},
            ) from e
        except OSError as e:
            raise DocumentError(
                f"Failed to read file: {path}",
                code=ErrorCode.DOCUMENT_PARSE_ERROR,
                details={"path": str(path), "error": str(e)},
            ) from e

        items = raw if isinstance(raw, list) else [raw]
        try:
            return [KnowledgeDocument.model_validate(item) for item in items]
        except PydanticValidationError as e:
            raise DocumentError(
                f"Knowledge file has an invalid document: {path}",
                code=ErrorCode.DOCUMENT_PARSE_ERROR,
                details={"path": str(path), "error": str(e)},
            ) from e
