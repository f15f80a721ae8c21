from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from app.core.exceptions import GenerationJsonInvalid
from app.services.feature_stream import FeatureStreamer, encode_ndjson
from app.services.features import FeatureInput, FeatureKind, FeatureRequest
from app.api.deps import get_feature_streamer

router = APIRouter(tags=["features"])

NDJSON_HEADERS = {"Cache-Control": "no-cache", "X-Accel-Buffering": "no"}


@router.post("/feature-stream")
async def feature_stream(
    req: FeatureRequest,
    streamer: FeatureStreamer = Depends(get_feature_streamer),
) -> StreamingResponse:
    """
    NDJSON stream: {"type":"token"}* then one {"type":"done"} or {"type":"error"}.
    """
    return StreamingResponse(
        encode_ndjson(streamer.stream(req)),
        media_type="application/x-ndjson",
        headers=NDJSON_HEADERS,
    )


class FeatureBatchRequest(FeatureInput):
    features: list[FeatureKind] = Field(min_length=1)

    def to_feature_request(self) -> FeatureRequest:
        data = self.model_dump(exclude={"features"})
        return FeatureRequest(feature=self.features[0], **data)


class FeatureBatchResponse(BaseModel):
    ok: bool
    results: dict[str, dict]


@router.post("/features/batch", response_model=FeatureBatchResponse)
async def features_batch(
    req: FeatureBatchRequest,
    streamer: FeatureStreamer = Depends(get_feature_streamer),
) -> FeatureBatchResponse:
    feature_req = req.to_feature_request()
    try:
        results = await streamer.generate_batch(req.features, feature_req)
    except GenerationJsonInvalid as e:
        raise HTTPException(status_code=502, detail=str(e))
    return FeatureBatchResponse(ok=True, results=results)
