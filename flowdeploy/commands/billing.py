"""FlowDeploy CLI - Billing commands"""

from typing import Optional

import click

from flowdeploy.base import ClientCommand
from flowdeploy.constants import ENTERPRISE_PLAN, PURCHASABLE_PLANS


class BillingOrderCommand(ClientCommand):
    """Create a payment order for the external checkout."""

    def __init__(self, plan: str, verbose: bool = False, json_output: bool = False):
        super().__init__(verbose=verbose, json_output=json_output)
        self.plan = plan

    async def execute_async(self) -> Optional[int]:
        result = await self.api.create_order(self.plan)
        if result.is_failure:
            return self.fail_with(result.error)

        order = result.data

        if self.json_output:
            self.output_json(
                {
                    "order_id": order.order_id,
                    "amount": order.amount,
                    "currency": order.currency,
                    "key_id": order.key_id,
                    "plan": order.plan,
                }
            )
            return 0

        self.show_header(title="Upgrade", user=self.session.user.username, details={"Plan": self.plan})
        self.console.print(f"  Order:    [cyan]{order.order_id}[/cyan]")
        self.console.print(f"  Amount:   [cyan]{order.display_amount}[/cyan]")
        self.console.print(f"  Key:      [dim]{order.key_id}[/dim]")
        self.console.print()
        self.print_dim("Complete the checkout, then run:")
        self.print_dim(
            f"  flowdeploy billing:verify --plan {self.plan} --order-id {order.order_id} "
            "--payment-id <id> --signature <signature>"
        )
        return 0


class BillingVerifyCommand(ClientCommand):
    """Confirm a completed checkout and refresh the profile."""

    def __init__(
        self,
        plan: str,
        order_id: str,
        payment_id: str,
        signature: str,
        verbose: bool = False,
        json_output: bool = False,
    ):
        super().__init__(verbose=verbose, json_output=json_output)
        self.plan = plan
        self.order_id = order_id
        self.payment_id = payment_id
        self.signature = signature

    async def execute_async(self) -> Optional[int]:
        result = await self.api.verify_payment(
            self.order_id, self.payment_id, self.signature, self.plan
        )
        if result.is_failure:
            return self.fail_with(result.error)

        await self.session.refresh()
        user = self.session.user

        if self.json_output:
            self.output_json({"verified": True, "plan": user.plan})
            return 0

        self.print_success(f"Payment verified, you are on the {user.plan} plan")
        return 0


@click.command(name="billing:order")
@click.argument("plan", type=click.Choice(PURCHASABLE_PLANS + [ENTERPRISE_PLAN]))
@click.option("--verbose", "-v", is_flag=True, help="Show debug output")
@click.option("--json", "json_output", is_flag=True, help="Output in JSON format")
def billing_order(plan, verbose, json_output):
    """
    Start a plan upgrade

    \b
    Example:
      flowdeploy billing:order pro
    """
    BillingOrderCommand(plan, verbose=verbose, json_output=json_output).run()


@click.command(name="billing:verify")
@click.option("--plan", required=True, type=click.Choice(PURCHASABLE_PLANS), help="Purchased plan")
@click.option("--order-id", required=True, help="Order id from billing:order")
@click.option("--payment-id", required=True, help="Payment id returned by the checkout")
@click.option("--signature", required=True, help="Signature returned by the checkout")
@click.option("--verbose", "-v", is_flag=True, help="Show debug output")
@click.option("--json", "json_output", is_flag=True, help="Output in JSON format")
def billing_verify(plan, order_id, payment_id, signature, verbose, json_output):
    """Verify a completed payment"""
    BillingVerifyCommand(
        plan, order_id, payment_id, signature, verbose=verbose, json_output=json_output
    ).run()
