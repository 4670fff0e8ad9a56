"""Events accepted by the conversation state machine."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from src.models.schemas import ErrorKind


class _Event(BaseModel):
    model_config = ConfigDict(frozen=True)


class Submit(_Event):
    kind: Literal["submit"] = "submit"
    query: str = Field(..., min_length=1)


class Fragment(_Event):
    kind: Literal["fragment"] = "fragment"
    text: str


class Done(_Event):
    kind: Literal["done"] = "done"


class Error(_Event):
    kind: Literal["error"] = "error"
    error_kind: ErrorKind = ErrorKind.TRANSPORT
    message: str = ""


class Reset(_Event):
    kind: Literal["reset"] = "reset"


Event = Submit | Fragment | Done | Error | Reset
