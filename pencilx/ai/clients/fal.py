"""
fal.ai Client
Synchronous FLUX image generation through the fal.run REST endpoint
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, ValidationError

from pencilx.ai.clients.base import HTTPProviderClient
from pencilx.ai.config import FAL
from pencilx.ai.exceptions import MalformedResponse
from pencilx.ai.key_manager import Credential
from pencilx.ai.models import ImageResult

DEFAULT_INFERENCE_STEPS = 28
DEFAULT_GUIDANCE_SCALE = 3.5


class _FalImage(BaseModel):
    url: str
    width: Optional[int] = None
    height: Optional[int] = None


class FalGenerationResponse(BaseModel):
    images: List[_FalImage] = Field(min_length=1)
    prompt: Optional[str] = None
    seed: Optional[int] = None


class FalClient(HTTPProviderClient):
    """Image-only provider"""

    name = FAL

    def __init__(self, *args, model: str = "fal-ai/flux/dev", **kwargs):
        super().__init__(*args, **kwargs)
        self.model = model

    def build_image_request(
        self, prompt: str, width: int, height: int, credential: Credential
    ) -> Dict[str, Any]:
        return {
            "url": f"{self.base_url}/{self.model}",
            "headers": {
                "Content-Type": "application/json",
                "Authorization": f"Key {credential.value}",
            },
            "json": {
                "prompt": prompt,
                "image_size": {"width": width, "height": height},
                "num_inference_steps": DEFAULT_INFERENCE_STEPS,
                "guidance_scale": DEFAULT_GUIDANCE_SCALE,
                "num_images": 1,
                "enable_safety_checker": True,
                "output_format": "jpeg",
            },
        }

    async def generate_image(
        self,
        prompt: str,
        width: int = 512,
        height: int = 512,
        credential: Optional[Credential] = None,
    ) -> ImageResult:
        credential = credential or self.key_table.current(self.name)
        payload = await self._post_json(
            self.build_image_request(prompt, width, height, credential), credential
        )

        try:
            data = FalGenerationResponse.model_validate(payload)
        except ValidationError as e:
            raise MalformedResponse(
                f"No images returned from {self.name}",
                provider=self.name,
                key_name=credential.name,
                original_error=e,
            )

        image = data.images[0]
        return ImageResult(
            url=image.url,
            model=self.model,
            provider=self.name,
            prompt=prompt,
            width=image.width or width,
            height=image.height or height,
        )
