from pydantic import BaseModel, Field, computed_field


class FastStartStatus(BaseModel):
    slow_start: bool = Field(False, description="moov is not in front of the media data.")
    has_free_atoms: bool = Field(False, description="The file carries free boxes or a repeated moov.")
    unsupported: bool = Field(False, description="ftyp, moov or mdat is missing.")

    @computed_field
    @property
    def already_suitable(self) -> bool:
        return not self.slow_start and not self.has_free_atoms


class FastStartReport(BaseModel):
    filename: str | None = Field(None, description="Name of the analyzed file, if known.")
    needs_patching: bool = Field(..., description="Whether a rewrite would produce a new file.")
    status: FastStartStatus
    output_length: int = Field(0, description="Length in bytes of the produced file, 0 if none.")
