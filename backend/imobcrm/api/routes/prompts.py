"""
Prompt preview route
"""
from fastapi import APIRouter

from ...agent import PromptBuilder, estimate_tokens, token_status
from ...models import PromptPreviewRequest, PromptPreview

router = APIRouter(prefix="/prompts", tags=["prompts"])


@router.post("/preview", response_model=PromptPreview)
async def preview_prompt(request: PromptPreviewRequest):
    """Render the prompt a department agent would run with"""
    prompt = PromptBuilder.build_prompt(request.config, request.department)
    tokens = estimate_tokens(prompt)
    return PromptPreview(
        department=request.department,
        prompt=prompt,
        tokens=tokens,
        token_status=token_status(tokens),
        is_override=PromptBuilder.get_override(request.config, request.department) is not None,
    )
