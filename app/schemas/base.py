from pydantic import BaseModel, ConfigDict


class BaseSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class OpenSchema(BaseModel):
    # Address book and carrier documents carry fields this engine does not
    # interpret; they must survive a draft round-trip untouched.
    model_config = ConfigDict(from_attributes=True, extra="allow")
