"""잔액 번호 생성기.

<PREFIX><N자리 0-padding 난수> 형식의 번호를 만들고, 저장소에 이미 있으면 다시 뽑는다.
무한 루프를 막기 위해 max_attempts 를 넘기면 GenerationExhaustedError 를 낸다.
"""

from __future__ import annotations

import logging
import secrets
from typing import Callable

from ..config import LedgerConfig
from ..exceptions import GenerationExhaustedError


logger = logging.getLogger(__name__)


def _default_random_below(upper: int) -> int:
    return secrets.randbelow(upper)


class BalanceNumberGenerator:
    def __init__(
        self,
        exists: Callable[[str], bool],
        *,
        prefix: str = "BAL",
        digits: int = 8,
        max_attempts: int = 20,
        random_below: Callable[[int], int] = _default_random_below,
    ) -> None:
        self._exists = exists
        self._prefix = prefix
        self._digits = digits
        self._max_attempts = max_attempts
        self._random_below = random_below

    @classmethod
    def from_config(
        cls, exists: Callable[[str], bool], config: LedgerConfig
    ) -> "BalanceNumberGenerator":
        return cls(
            exists,
            prefix=config.balance_number_prefix,
            digits=config.balance_number_digits,
            max_attempts=config.max_generation_attempts,
        )

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    def candidate(self) -> str:
        """저장소 확인 없이 번호 후보 하나를 만든다."""

        number = self._random_below(10**self._digits)
        return f"{self._prefix}{number:0{self._digits}d}"

    def generate(self) -> str:
        for attempt in range(1, self._max_attempts + 1):
            candidate = self.candidate()
            if not self._exists(candidate):
                return candidate
            logger.debug(
                "balance number collision: %s (attempt %d/%d)",
                candidate,
                attempt,
                self._max_attempts,
            )
        raise GenerationExhaustedError(self._max_attempts)

    def allocate(self, claim: Callable[[str], bool]) -> str:
        """번호를 뽑아 claim(번호) 으로 점유한다.

        claim 이 False 를 반환하면(조회와 저장 사이에 다른 요청이 같은 번호를 가져감)
        충돌로 보고 다시 뽑는다. 사전 조회 충돌과 저장 충돌은 같은 시도 한도를 공유한다.
        """

        for attempt in range(1, self._max_attempts + 1):
            candidate = self.candidate()
            if self._exists(candidate):
                logger.debug(
                    "balance number collision: %s (attempt %d/%d)",
                    candidate,
                    attempt,
                    self._max_attempts,
                )
                continue
            if claim(candidate):
                return candidate
            logger.debug(
                "balance number taken while inserting: %s (attempt %d/%d)",
                candidate,
                attempt,
                self._max_attempts,
            )
        raise GenerationExhaustedError(self._max_attempts)
