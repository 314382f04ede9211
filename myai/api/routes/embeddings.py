from fastapi import APIRouter

from myai.api.dependencies import AuthContextDep, GatewayDep
from myai.models.completion.requests import EmbeddingRequest
from myai.models.completion.responses import EmbeddingResponse, UsageResponse

router = APIRouter(prefix="/embeddings", tags=["embeddings"])


@router.post("", response_model=EmbeddingResponse)
async def create_embedding(
    request_body: EmbeddingRequest,
    context: AuthContextDep,
    gateway: GatewayDep,
) -> EmbeddingResponse:
    """One vector per input item, in input order"""
    response = await gateway.create_embedding(request_body.input, model=request_body.model)
    return EmbeddingResponse(
        model=response.model,
        embeddings=response.embeddings,
        usage=UsageResponse(**response.usage.to_dict()),
    )
