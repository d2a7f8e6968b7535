"""测试数据预置."""

import logging

from .gateway import MailOperationError, MailOperationGateway
from .generator import RequestGenerator

logger = logging.getLogger(__name__)

PROGRESS_EVERY = 100


async def seed_mails(gateway: MailOperationGateway, generator: RequestGenerator, count: int) -> int:
    """通过网关创建 count 封邮件，单封失败只告警，返回成功数量."""
    print(f"\n预置测试数据: {count} 封邮件, {len(generator.user_ids)} 个用户")
    created = 0
    for i in range(count):
        try:
            await gateway.create_mail(generator.generate_create_request())
        except MailOperationError as e:
            logger.warning(f"预置第 {i} 封邮件失败: {e}")
            continue
        created += 1
        if i > 0 and i % PROGRESS_EVERY == 0:
            print(f"  已创建 {i}/{count}")
    print(f"数据预置完成: 成功 {created}/{count}\n")
    return created
