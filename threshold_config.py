from pydantic import BaseModel, ConfigDict, Field

BLOBS_URL = "http://wsr.imagej.net/images/blobs.gif"
DEFAULT_METHOD = "Otsu"


class ThresholdConfig(BaseModel):
    """
    Settings of an automatic threshold run.
    The defaults threshold the blobs sample image with Otsu's method.
    """

    model_config = ConfigDict(frozen=True)

    image_url: str = Field(default=BLOBS_URL, min_length=1)
    # validated by the threshold operation, not here
    method: str = Field(default=DEFAULT_METHOD, min_length=1)
    # None picks cuda when available, cpu otherwise
    device: str | None = Field(default=None)
    show: bool = Field(default=True)
    timeout: float = Field(default=30.0, gt=0)
