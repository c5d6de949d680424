"""Pydantic schemas for submissions.

A submission is one participant's mutable set of stored files inside a
room, split into the two categories produced by the file classifier.
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_serializer

from ..files.schemas import FileCategory
from ..schemas import ApiModel, utc_isoformat


class Submission(BaseModel):
    """A persisted submission record."""
    id: int
    room_id: str
    participant_identity: str
    yaml_files: List[str] = Field(default_factory=list)
    apworld_files: List[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    def files_for(self, category: FileCategory) -> List[str]:
        if category is FileCategory.APWORLD:
            return self.apworld_files
        return self.yaml_files

    @property
    def all_files(self) -> List[str]:
        return self.yaml_files + self.apworld_files


class SubmissionFiles(ApiModel):
    """The two file lists returned after a mutation."""
    yaml_files: List[str] = Field(default_factory=list)
    apworld_files: List[str] = Field(default_factory=list)


class UploadResult(SubmissionFiles):
    created: bool = Field(..., description="True if this upload created the submission")


class SubmissionDetail(ApiModel):
    yaml_files: List[str]
    apworld_files: List[str]
    created_at: datetime
    updated_at: datetime

    @field_serializer("created_at", "updated_at")
    def _serialise_timestamps(self, value: datetime) -> str:
        return utc_isoformat(value)


class GetSubmissionResponse(ApiModel):
    success: bool = True
    has_submission: bool
    submission: Optional[SubmissionDetail] = None


class FilesResponse(SubmissionFiles):
    success: bool = True
    message: str


class RemoveFilesRequest(ApiModel):
    file_names: List[str] = Field(default_factory=list)
