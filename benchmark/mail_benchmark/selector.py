"""按权重选择操作类型."""

import random
from typing import Optional

from .config import check_weights
from .models import OperationKind, OperationWeights


class OperationSelector:
    """加权随机选择器，区间顺序固定为 create → list → search."""

    def __init__(self, weights: OperationWeights, rng: Optional[random.Random] = None):
        check_weights(weights)
        self.weights = weights
        self._rng = rng or random.Random()
        self._bounds = (
            (weights.create_mail_weight, OperationKind.CREATE),
            (weights.create_mail_weight + weights.list_mail_weight, OperationKind.LIST),
            (weights.total, OperationKind.SEARCH),
        )

    def select(self) -> OperationKind:
        """一次抽样."""
        draw = self._rng.randrange(self.weights.total)
        for bound, kind in self._bounds:
            if draw < bound:
                return kind
        return OperationKind.SEARCH
