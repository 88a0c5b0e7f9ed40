from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Video(CamelModel):
    id: str
    title: str = ""
    description: str = ""
    thumbnail: str | None = None
    channel_title: str = ""
    published_at: str | None = None
    view_count: int = Field(default=0, ge=0)
    like_count: int = Field(default=0, ge=0)
    comment_count: int = Field(default=0, ge=0)
    url: str


class VideoListResponse(CamelModel):
    videos: list[Video] = Field(default_factory=list)
    total_results: int = 0
    next_page_token: str | None = None
    prev_page_token: str | None = None

    def to_payload(self) -> dict:
        payload = self.model_dump(by_alias=True)
        for key in ("nextPageToken", "prevPageToken"):
            if payload.get(key) is None:
                payload.pop(key, None)
        return payload
