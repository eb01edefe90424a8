"""Earnings ledger for delivery agents."""

from decimal import ROUND_HALF_UP, Decimal

from orderflow.models.user import Earnings, User
from orderflow.state.repositories import UserRepository
from orderflow.workflow.base import WorkflowComponent


class EarningsLedger(WorkflowComponent):
    """Credits agents their share of the delivery fee on completed deliveries."""

    def __init__(self, users: UserRepository):
        super().__init__("earnings_ledger")
        self.users = users

    def agent_share(self, delivery_fee: Decimal) -> Decimal:
        share = Decimal(delivery_fee) * self.settings.agent_fee_share
        return share.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)

    async def accrue(self, agent_id: str, delivery_fee: Decimal) -> Decimal | None:
        """
        Credit one completed delivery to an agent.

        Never fails: an agent record that can not be found is skipped, the
        same way stock restoration skips deleted products.

        Returns:
            The amount credited, or None when the accrual was skipped
        """
        amount = self.agent_share(delivery_fee)

        def credit(agent: User) -> None:
            agent.earnings.total += amount
            agent.earnings.deliveries += 1

        agent = await self.users.update_earnings(agent_id, credit)
        if agent is None:
            self.logger.logger.warning("accrual_skipped_missing_agent", agent_id=agent_id)
            return None

        self.logger.logger.info(
            "earnings_accrued",
            agent_id=agent_id,
            amount=str(amount),
            total=str(agent.earnings.total),
            deliveries=agent.earnings.deliveries,
        )
        return amount

    async def summary(self, agent_id: str) -> Earnings:
        agent = await self.users.require(agent_id)
        return agent.earnings
