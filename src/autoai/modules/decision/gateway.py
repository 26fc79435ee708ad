"""
决策网关：构建提示词 -> 调用决策服务 -> 解析 -> 校验
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

from ...core.logger import logger
from ...models.action import Action
from ...models.screen import ScreenState
from ...models.task import ActionHistory, TodoList
from . import parser
from .errors import DecisionError, DecisionErrorKind
from .prompt import PromptBuilder
from .service import DecisionService, DecisionServiceError


@dataclass(frozen=True)
class Decision:
    action: Action
    reasoning: str = ""
    raw_reply: str = ""


class DecisionGateway:
    def __init__(self, service: DecisionService, prompt_builder: Optional[PromptBuilder] = None) -> None:
        self.service = service
        self.prompts = prompt_builder or PromptBuilder()
        self._log = logger.bind(module="DecisionGateway")

    async def decide(
        self,
        task: str,
        state: ScreenState,
        recent_history: Sequence[ActionHistory] = (),
        plan: Optional[TodoList] = None,
    ) -> Decision:
        """
        决定下一步动作

        Raises:
            DecisionError: 请求失败、空回复、无法解析或校验失败
        """
        system_prompt = self.prompts.build_system_prompt()
        user_prompt = self.prompts.build_user_prompt(task, state, recent_history, plan)

        try:
            reply = await self.service.chat(system_prompt, user_prompt, state.image_encoded or None)
        except DecisionServiceError as e:
            raise DecisionError(DecisionErrorKind.TRANSPORT, str(e)) from e

        if not reply or not reply.strip():
            raise DecisionError(DecisionErrorKind.EMPTY, "决策服务返回空内容", raw_reply=reply)

        data = parser.extract_json(reply)
        action = parser.validate(parser.to_action(data))
        reasoning = parser.extract_reasoning(data)
        self._log.info(f"AI 决策: {action.describe()}")
        return Decision(action=action, reasoning=reasoning, raw_reply=reply)
