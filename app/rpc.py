"""JSON-RPC 2.0 ディスパッチャ（get_transcript ツールを公開）"""

from typing import Any

from transcript_remote.application.usecases.resolve_transcript import (
    AUTO_LANGUAGE,
    ResolveTranscriptUseCase,
)
from transcript_remote.domain.exceptions import TranscriptServiceError
from transcript_remote.infrastructure.logging_config import LogContext, get_logger

logger = get_logger(__name__)

JSONRPC_VERSION = "2.0"
PROTOCOL_VERSION = "2024-11-05"

# エラーコード
TOOL_ERROR = -1
METHOD_NOT_FOUND = -32601
INTERNAL_ERROR = -32603

GET_TRANSCRIPT_TOOL = {
    "name": "get_transcript",
    "description": "Extract transcript from YouTube video URL",
    "inputSchema": {
        "type": "object",
        "properties": {
            "url": {
                "type": "string",
                "description": "YouTube video URL (any format)",
            },
            "language": {
                "type": "string",
                "description": (
                    "Optional language code for the transcript (e.g., 'en', 'es'). "
                    "Defaults to 'auto', which tries common languages in order."
                ),
            },
        },
        "required": ["url"],
    },
}


def result_response(request_id: Any, result: dict[str, Any]) -> dict[str, Any]:
    return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "result": result}


def error_response(request_id: Any, code: int, message: str) -> dict[str, Any]:
    return {
        "jsonrpc": JSONRPC_VERSION,
        "id": request_id,
        "error": {"code": code, "message": message},
    }


def internal_error_response(request_id: Any = None) -> dict[str, Any]:
    return error_response(request_id, INTERNAL_ERROR, "Internal error")


class JsonRpcDispatcher:
    """
    JSON-RPC リクエストを処理してレスポンスを返す

    ツール実行時のドメインエラーは code -1 のエラーレスポンスにする。
    想定外の例外は -32603 (Internal error) にまとめる。
    """

    def __init__(
        self,
        usecase: ResolveTranscriptUseCase,
        server_name: str,
        server_version: str,
    ):
        self.usecase = usecase
        self.server_name = server_name
        self.server_version = server_version

    async def handle(self, request: dict[str, Any]) -> dict[str, Any]:
        request_id = request.get("id") if isinstance(request, dict) else None
        try:
            method = request["method"]
            params = request.get("params") or {}

            if method == "initialize":
                return result_response(request_id, self._initialize_result())
            if method == "tools/list":
                return result_response(request_id, {"tools": [GET_TRANSCRIPT_TOOL]})
            if method == "tools/call":
                return await self._call_tool(request_id, params)

            return error_response(request_id, METHOD_NOT_FOUND, f"Method not found: {method}")

        except Exception as e:
            logger.exception(f"Error handling request: {e}")
            return internal_error_response(request_id)

    def _initialize_result(self) -> dict[str, Any]:
        return {
            "protocolVersion": PROTOCOL_VERSION,
            "capabilities": {"tools": {}},
            "serverInfo": {"name": self.server_name, "version": self.server_version},
        }

    async def _call_tool(self, request_id: Any, params: dict[str, Any]) -> dict[str, Any]:
        name = params.get("name")
        if name != GET_TRANSCRIPT_TOOL["name"]:
            return error_response(request_id, METHOD_NOT_FOUND, f"Unknown tool: {name}")

        args = params.get("arguments") or {}
        url = str(args.get("url") or "")
        language = str(args.get("language") or AUTO_LANGUAGE)

        ctx = LogContext(tool=name, url=url, language=language)
        logger.info(f"[RPC] tools/call | {ctx}")

        try:
            transcript = await self.usecase.execute(url, language)
        except TranscriptServiceError as e:
            logger.info(f"[RPC] ツールエラー ({e.kind.value}): {e} | {ctx}")
            return error_response(request_id, TOOL_ERROR, e.message)

        return result_response(
            request_id,
            {"content": [{"type": "text", "text": transcript}]},
        )
