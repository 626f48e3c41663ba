from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

EditOp = Literal["add", "remove", "modify"]

# Models often answer with the past-tense names used in the prompt example
_OP_ALIASES = {"added": "add", "removed": "remove", "modified": "modify"}


class LineEdit(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    line_number: int = Field(..., alias="lineNumber", ge=1)
    op: EditOp = Field(..., alias="type")
    content: str = ""

    @field_validator("op", mode="before")
    @classmethod
    def _normalize_op(cls, v):
        if isinstance(v, str):
            v = v.strip().lower()
            return _OP_ALIASES.get(v, v)
        return v


class FileChange(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    file_path: str = Field(..., alias="filePath", min_length=1)
    is_new_file: bool = Field(False, alias="isNewFile")
    full_content: str | None = Field(None, alias="fullContent")
    changes: list[LineEdit] = Field(default_factory=list)

    @field_validator("file_path")
    @classmethod
    def _safe_path(cls, v: str) -> str:
        v = v.strip().replace("\\", "/").lstrip("/")
        if not v or ".." in v.split("/"):
            raise ValueError(f"unsafe file path: {v!r}")
        return v


class Patch(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    summary: str = ""
    files: list[FileChange] = Field(..., min_length=1)

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True)
