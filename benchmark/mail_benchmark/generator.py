"""压测请求生成."""

import random
from typing import List, Optional, Sequence

from bson import ObjectId

from .config import ConfigError
from .models import ListMailsRequest, MailRequest, SearchMailsRequest

SUBJECTS = (
    "Meeting Update",
    "Project Status",
    "Quick Question",
    "Follow Up",
    "Important Notice",
    "Weekly Report",
    "Team Sync",
    "Budget Review",
    "Action Required",
)

CONTENT_TEMPLATES = (
    "Hi team, I wanted to follow up on our discussion about {}. Please review and provide feedback.",
    "This is regarding the {} project. We need to discuss the next steps.",
    "Can you please take a look at {}? Your input would be valuable.",
    "Update on {}: We've made significant progress this week.",
    "Reminder about {}. Please complete by end of day.",
)

CC_PROBABILITY = 0.3
BCC_PROBABILITY = 0.1
SEARCH_LIMIT = 50


def new_user_ids(count: int) -> List[str]:
    """生成一批新的用户 ID."""
    return [str(ObjectId()) for _ in range(count)]


class RequestGenerator:
    """随机请求生成器."""

    def __init__(self, user_ids: Sequence[str], rng: Optional[random.Random] = None):
        if not user_ids:
            raise ConfigError("用户列表不能为空")
        self._user_ids = list(user_ids)
        self._rng = rng or random.Random()

    @property
    def user_ids(self) -> List[str]:
        return list(self._user_ids)

    def random_user_id(self) -> str:
        return self._rng.choice(self._user_ids)

    def _pick_other(self, sender: str) -> Optional[str]:
        # 抽到发件人本人则放弃，不重新抽取
        candidate = self.random_user_id()
        return None if candidate == sender else candidate

    def generate_create_request(self, reply_to: Optional[str] = None) -> MailRequest:
        """生成发信请求：1-3 个收件人抽样，排除发件人."""
        sender = self.random_user_id()

        to = []
        for _ in range(self._rng.randrange(3) + 1):
            if (recipient := self._pick_other(sender)) is not None:
                to.append(recipient)

        cc = []
        if self._rng.random() < CC_PROBABILITY:
            if (recipient := self._pick_other(sender)) is not None:
                cc.append(recipient)

        bcc = []
        if self._rng.random() < BCC_PROBABILITY:
            if (recipient := self._pick_other(sender)) is not None:
                bcc.append(recipient)

        subject = self._rng.choice(SUBJECTS)
        content = self._rng.choice(CONTENT_TEMPLATES).format(subject)

        return MailRequest(
            from_user=sender,
            to=to,
            cc=cc,
            bcc=bcc,
            subject=subject,
            content=content,
            reply_to=reply_to,
        )

    def generate_list_request(self) -> ListMailsRequest:
        return ListMailsRequest(
            user_id=self.random_user_id(),
            limit=20 + self._rng.randrange(80),
            offset=self._rng.randrange(100),
        )

    def generate_search_request(self) -> SearchMailsRequest:
        return SearchMailsRequest(
            user_id=self.random_user_id(),
            search_term=self._rng.choice(SUBJECTS),
            limit=SEARCH_LIMIT,
        )
