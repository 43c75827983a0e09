"""Stack-name keyed registry of in-flight validations."""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from .models import Validation

logger = logging.getLogger(__name__)


class ValidationRegistry:
    """Holds at most one ``Validation`` per stack name.

    Lets other subsystems ask what is currently happening to a stack without
    knowing which workflow id started it. Adding a validation for a stack that
    already has one replaces the earlier entry.
    """

    def __init__(self) -> None:
        self._validations: Dict[str, Validation] = {}

    def add(self, validation: Validation) -> None:
        previous = self._validations.get(validation.stack_name)
        if previous is not None:
            logger.warning(
                f"Replacing validation {previous.change_set_name} for stack {validation.stack_name} "
                f"with {validation.change_set_name}"
            )
        self._validations[validation.stack_name] = validation

    def get(self, stack_name: str) -> Optional[Validation]:
        return self._validations.get(stack_name)

    def remove(self, stack_name: str) -> Optional[Validation]:
        return self._validations.pop(stack_name, None)

    def stack_names(self) -> List[str]:
        return list(self._validations)

    def __contains__(self, stack_name: object) -> bool:
        return stack_name in self._validations

    def __len__(self) -> int:
        return len(self._validations)


__all__ = ["Validation", "ValidationRegistry"]
