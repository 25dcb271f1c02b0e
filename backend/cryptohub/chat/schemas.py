from pydantic import BaseModel, ConfigDict, Field


class PostMessageRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    room_id: str = Field(alias="roomId", min_length=1)
    content: str = Field(min_length=1)


class DeleteMessageResponse(BaseModel):
    message: str = "Message deleted successfully"
