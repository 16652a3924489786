"""Part catalog schemas — JSON shapes consumed by the frontend."""

from pydantic import BaseModel, ConfigDict, Field


class PartOut(BaseModel):
    """One catalog entry, rebuilt from Drive on every request."""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    image_reference: str | None = Field(default=None, alias="imageReference")
    details: str = ""


class UploadResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    folder_id: str = Field(alias="folderId")


class DeleteRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    folder_id: str | None = Field(default=None, alias="folderId")


class DeleteResult(BaseModel):
    success: bool = True
