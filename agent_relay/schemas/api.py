"""HTTP control surface schemas."""

from pydantic import BaseModel


class ActionResult(BaseModel):
    """Generic result for start-task / send-message / button presses."""

    success: bool
    error: str | None = None


class InstructionsResult(BaseModel):
    success: bool
    instructions: str | None = None


# Fields default to empty so the route can answer 400 with its own message
class StartTaskRequest(BaseModel):
    task: str = ""
    images: list[str] | None = None


class SendMessageRequest(BaseModel):
    message: str = ""
    images: list[str] | None = None


class InstructionsRequest(BaseModel):
    instructions: str = ""


class EndpointInfo(BaseModel):
    path: str
    method: str
    description: str


class ApiIndex(BaseModel):
    endpoints: list[EndpointInfo]
