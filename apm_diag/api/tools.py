from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException
from pydantic import BaseModel, ValidationError

from apm_diag.services.inspector import InspectorAPIError, InspectorConfigError, inspector_client
from apm_diag.services.tools import ToolService, execute_tool, get_tool, list_tools

router = APIRouter()


class ToolInfo(BaseModel):
    name: str
    description: str
    input_schema: dict[str, Any]


class ToolResult(BaseModel):
    tool: str
    content: str


def get_tool_service() -> ToolService:
    return ToolService(inspector_client)


@router.get("", response_model=list[ToolInfo])
async def get_tools() -> list[ToolInfo]:
    """등록된 도구 목록 (이름, 설명, 인자 JSON schema)"""
    return [
        ToolInfo(name=t.name, description=t.description, input_schema=t.input_schema())
        for t in list_tools()
    ]


@router.post("/{name}", response_model=ToolResult)
async def run_tool(
    name: str,
    arguments: dict[str, Any] | None = Body(None),
    service: ToolService = Depends(get_tool_service),
) -> ToolResult:
    """도구 실행 → 리포트 텍스트"""
    try:
        tool = get_tool(name)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))

    try:
        args = tool.args_model.model_validate(arguments or {})
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors(include_url=False, include_context=False))

    try:
        content = await execute_tool(service, tool, args)
    except InspectorConfigError as e:
        raise HTTPException(status_code=503, detail=str(e))
    except InspectorAPIError as e:
        raise HTTPException(status_code=502, detail=str(e))

    return ToolResult(tool=name, content=content)
