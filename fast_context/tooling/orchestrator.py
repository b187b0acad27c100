"""Turn-based search loop: ask the model, run its commands, feed results back."""

from __future__ import annotations

import json
import logging
import uuid
from pathlib import Path
from typing import Callable, List, Optional, Union

from fast_context.cloud.client import SearchServiceClient
from fast_context.cloud.credentials import CredentialStore
from fast_context.config import Config, SearchSettings
from fast_context.errors import AuthError, FastContextError, HttpError, ProtocolDecodeError, RateLimited, TransportError
from fast_context.tools.executor import ToolExecutor
from fast_context.tools.truncation import TruncationPolicy
from fast_context.tooling.answer import parse_answer
from fast_context.tooling.formatting import format_search_result
from fast_context.tooling.prompts import (
    ANSWER,
    FINAL_FORCE_ANSWER,
    RESTRICTED_EXEC,
    build_system_prompt,
    tool_definitions_json,
)
from fast_context.tooling.repo_map import build_repo_map, render_user_content
from fast_context.tooling.types import ConversationLog, Message, MessageRole, RepoMap, RepoMapMeta, SearchResult

logger = logging.getLogger(__name__)

RATE_LIMITED_MESSAGE = "Rate limited, please try again later"
EXHAUSTED_MESSAGE = "Max turns reached without getting an answer"
CANCELLED_MESSAGE = "cancelled"

ProgressCallback = Callable[[str], None]
ContinuePredicate = Callable[[], bool]


def _unique(patterns: List[str]) -> List[str]:
    return list(dict.fromkeys(patterns))


class SearchOrchestrator:
    """Run searches against one configuration.

    The client, credential store and config are injectable so the loop can be
    driven by fakes in tests.
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        client: Optional[SearchServiceClient] = None,
        credentials: Optional[CredentialStore] = None,
    ) -> None:
        self.config = config or Config()
        self.client = client or SearchServiceClient(self.config.client)
        self.credentials = credentials or CredentialStore()

    def _settings(self, settings: Optional[SearchSettings], overrides: dict) -> SearchSettings:
        base = settings or self.config.search
        return base.with_overrides(**overrides) if overrides else base

    def search(
        self,
        query: str,
        project_root: Union[str, Path],
        *,
        api_key: Optional[str] = None,
        jwt: Optional[str] = None,
        settings: Optional[SearchSettings] = None,
        on_progress: Optional[ProgressCallback] = None,
        should_continue: Optional[ContinuePredicate] = None,
        **overrides: Optional[int],
    ) -> SearchResult:
        """Search ``project_root`` for code relevant to ``query``.

        Never raises for remote or credential failures; those come back as a
        ``SearchResult`` with ``error`` set (and ``http_status`` when known).
        """
        limits = self._settings(settings, overrides)

        def progress(message: str) -> None:
            logger.info(message)
            if on_progress is not None:
                on_progress(message)

        root = Path(project_root).expanduser().resolve()
        if not root.is_dir():
            return SearchResult(error=f"Project path is not a directory: {root}")

        repo_map = build_repo_map(root, limits.tree_depth)
        meta = repo_map.meta
        fell_back_note = f" [fell back from L={limits.tree_depth}]" if repo_map.fell_back else ""
        progress(f"Repo map: tree -L {repo_map.depth} ({meta.size_kb}KB){fell_back_note}")

        try:
            key = self.credentials.require_api_key(api_key or self.config.api_key)
        except AuthError as exc:
            return SearchResult(error=str(exc))

        if not jwt:
            progress("Fetching JWT...")
            try:
                jwt = self.client.get_jwt(key)
            except HttpError as exc:
                return SearchResult(error=f"Failed to fetch JWT: {exc}", http_status=exc.status)
            except FastContextError as exc:
                return SearchResult(error=f"Failed to fetch JWT: {exc}")

        progress("Checking rate limit...")
        try:
            self.client.check_rate_limit(key, jwt)
        except RateLimited:
            return SearchResult(error=RATE_LIMITED_MESSAGE, http_status=429)

        executor = ToolExecutor(
            root,
            TruncationPolicy(max_lines=limits.result_max_lines, line_max_chars=limits.line_max_chars),
            max_commands=limits.max_commands,
        )
        return self._run_turns(query, key, jwt, executor, repo_map, limits, progress, should_continue)

    def _run_turns(
        self,
        query: str,
        key: str,
        jwt: str,
        executor: ToolExecutor,
        repo_map: RepoMap,
        limits: SearchSettings,
        progress: ProgressCallback,
        should_continue: Optional[ContinuePredicate],
    ) -> SearchResult:
        meta: RepoMapMeta = repo_map.meta
        tool_defs = tool_definitions_json(limits.max_commands)

        history = ConversationLog()
        history.append(
            Message(
                role=MessageRole.SYSTEM,
                content=build_system_prompt(limits.max_turns, limits.max_commands, limits.max_results),
            )
        )
        history.append(Message(role=MessageRole.USER, content=render_user_content(query, repo_map)))

        def finish(**fields) -> SearchResult:
            return SearchResult(rg_patterns=_unique(executor.rg_patterns), meta=meta, **fields)

        force_injected = False
        total_calls = limits.max_turns + 1
        for turn in range(total_calls):
            if should_continue is not None and not should_continue():
                progress("Search cancelled")
                return finish(error=CANCELLED_MESSAGE)

            progress(f"Turn {turn + 1}/{total_calls}")
            try:
                response = self.client.stream_chat(
                    key, jwt, history.messages, tool_defs, timeout_ms=limits.timeout_ms
                )
            except HttpError as exc:
                return finish(error=f"Request failed: {exc}", http_status=exc.status)
            except TransportError as exc:
                return finish(error=f"Request failed: {exc}")
            except ProtocolDecodeError as exc:
                logger.warning("Undecodable model response: %s", exc)
                return finish(raw_response="")

            call = response.tool_call
            if call is None:
                if response.is_error:
                    return finish(error=response.text)
                return finish(raw_response=response.text)

            if call.name == ANSWER:
                progress("Received final answer")
                answer_xml = call.arguments.get("answer")
                files = parse_answer(answer_xml if isinstance(answer_xml, str) else "", executor.root)
                return finish(files=files)

            if call.name != RESTRICTED_EXEC:
                logger.warning("Model called unknown tool %r; returning its text", call.name)
                return finish(raw_response=response.text)

            commands = [name for name in call.arguments if name.startswith("command")]
            progress(f"Executing {len(commands)} local commands")
            results = executor.execute_batch(call.arguments)

            call_id = str(uuid.uuid4())
            history.append(
                Message(
                    role=MessageRole.ASSISTANT,
                    content=response.text,
                    tool_call_id=call_id,
                    tool_name=RESTRICTED_EXEC,
                    tool_args_json=json.dumps(call.arguments, separators=(",", ":"), ensure_ascii=False),
                )
            )
            history.append(Message(role=MessageRole.TOOL_RESULT, content=results, ref_call_id=call_id))

            if not force_injected and turn >= limits.max_turns - 1:
                history.append(Message(role=MessageRole.USER, content=FINAL_FORCE_ANSWER))
                force_injected = True
                progress("Injected force-answer prompt")

        return finish(error=EXHAUSTED_MESSAGE)


def search(
    query: str,
    project_root: Union[str, Path],
    *,
    config: Optional[Config] = None,
    **kwargs,
) -> SearchResult:
    """Run one search with configuration loaded from file and environment."""
    return SearchOrchestrator(config or Config.load()).search(query, project_root, **kwargs)


def search_with_content(
    query: str,
    project_root: Union[str, Path],
    *,
    config: Optional[Config] = None,
    **kwargs,
) -> str:
    """Run one search and render it as text for a calling agent."""
    config = config or Config.load()
    orchestrator = SearchOrchestrator(config)
    overrides = {name: kwargs.pop(name) for name in list(kwargs) if name in SearchSettings.__dataclass_fields__}
    settings = config.search.with_overrides(**overrides)
    result = orchestrator.search(query, project_root, settings=settings, **kwargs)
    return format_search_result(result, settings)
