from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from pydantic import AnyHttpUrl, BaseModel, ConfigDict, Field, TypeAdapter, field_validator

WatermarkPosition = Literal["top-left", "top-right", "bottom-left", "bottom-right", "center"]


class ResizeOptions(BaseModel):
    width: int = Field(gt=0)
    height: int = Field(gt=0)


class WatermarkOptions(BaseModel):
    text: str = Field(min_length=1)
    position: WatermarkPosition = "bottom-right"


class ResizeTransform(BaseModel):
    type: Literal["resize"]
    options: ResizeOptions


class GrayscaleTransform(BaseModel):
    type: Literal["grayscale"]
    # grayscale takes no parameters, anything sent here is ignored
    options: Optional[Dict[str, Any]] = None


class WatermarkTransform(BaseModel):
    type: Literal["watermark"]
    options: WatermarkOptions


Transformation = Annotated[
    Union[ResizeTransform, GrayscaleTransform, WatermarkTransform],
    Field(discriminator="type"),
]


class UnknownTransform(BaseModel):
    """a spec type this worker does not understand yet, applied as a no-op"""
    model_config = ConfigDict(extra="allow")

    type: Optional[str] = None
    options: Optional[Any] = None


KNOWN_TRANSFORM_TYPES = ("resize", "grayscale", "watermark")

_transformation_adapter = TypeAdapter(Transformation)


def parse_transformation(raw: dict) -> Union[ResizeTransform, GrayscaleTransform, WatermarkTransform, UnknownTransform]:
    """decode one queued spec, unknown types decode to UnknownTransform instead of failing"""
    if raw.get("type") not in KNOWN_TRANSFORM_TYPES:
        return UnknownTransform.model_validate(raw)
    return _transformation_adapter.validate_python(raw)


def parse_transformations(raw: List[dict]) -> list:
    return [parse_transformation(item) for item in raw]


def dump_transformations(specs: list) -> List[dict]:
    return [spec.model_dump(mode="json", exclude_none=True) for spec in specs]


_http_url = TypeAdapter(AnyHttpUrl)


class JobCreate(BaseModel):
    # stored as submitted, the parsed url would normalize it (e.g. add a trailing slash)
    url: str
    transformations: List[Transformation] = Field(min_length=1)

    @field_validator("url")
    @classmethod
    def url_must_be_http(cls, value: str) -> str:
        _http_url.validate_python(value)
        return value
