"""
Read-only analytics over orders: customer value and loyalty, delivery KPIs.

Orders are flattened into a pandas DataFrame and aggregated there; nothing is
written back to the store.
"""

import logging
from datetime import datetime, timezone
from typing import Any

import pandas as pd

from connectors.store import LogisticsStore
from models.enums import LoyaltyTier, OrderStatus
from models.order import Order

from .exceptions import CustomerNotFoundError, HubNotFoundError

logger = logging.getLogger(__name__)

# minimum lifetime spend (INR) per tier, highest first
LOYALTY_THRESHOLDS: list[tuple[float, LoyaltyTier]] = [
    (50000, LoyaltyTier.PLATINUM),
    (20000, LoyaltyTier.GOLD),
    (5000, LoyaltyTier.SILVER),
]
HIGH_VALUE_AVERAGE_ORDER = 2000
TARGET_DELIVERY_DAYS = 3
TARGET_ON_TIME_RATE = 80
MONTHLY_TREND_LIMIT = 12
TOP_AGENT_LIMIT = 10

ORDER_COLUMNS = [
    "order_id",
    "customer_id",
    "status",
    "total_value",
    "created_at",
    "shipped_at",
    "delivered_at",
    "estimated_delivery_date",
    "delivery_attempts",
    "delivery_agent_id",
]


def calculate_loyalty_tier(total_spent: float) -> LoyaltyTier:
    for threshold, tier in LOYALTY_THRESHOLDS:
        if total_spent >= threshold:
            return tier
    return LoyaltyTier.BRONZE


def orders_to_frame(orders: list[Order]) -> pd.DataFrame:
    """One row per order with the columns the aggregations need."""
    rows = [
        {
            "order_id": o.order_id,
            "customer_id": o.customer_id,
            "status": o.status.value,
            "total_value": o.payment_details.total_value,
            "created_at": o.created_at,
            "shipped_at": o.shipping_details.shipped_at,
            "delivered_at": o.shipping_details.delivered_at,
            "estimated_delivery_date": o.shipping_details.estimated_delivery_date,
            "delivery_attempts": o.shipping_details.delivery_attempts,
            "delivery_agent_id": o.workflow_tracking.delivery_agent_id or o.route_optimization.delivery_agent_id,
        }
        for o in orders
    ]
    df = pd.DataFrame(rows, columns=ORDER_COLUMNS)
    for column in ("created_at", "shipped_at", "delivered_at", "estimated_delivery_date"):
        df[column] = pd.to_datetime(df[column], utc=True)
    df["total_value"] = df["total_value"].astype(float)
    df["delivery_attempts"] = df["delivery_attempts"].fillna(0).astype(int)
    return df


def _round(value: Any, digits: int = 2) -> float:
    return 0.0 if value is None or pd.isna(value) else round(float(value), digits)


def _utc_timestamp(value: datetime) -> pd.Timestamp:
    stamp = pd.Timestamp(value)
    return stamp.tz_localize("UTC") if stamp.tzinfo is None else stamp


def _delivery_days(df: pd.DataFrame) -> pd.Series:
    return (df["delivered_at"] - df["shipped_at"]).dt.total_seconds() / 86400


class AnalyticsAggregator:
    def __init__(self, store: LogisticsStore):
        self.store = store

    # ------------------------------------------------------------- customers

    async def customer_analytics(self, customer_id: str, now: datetime | None = None) -> dict[str, Any]:
        customer = await self.store.get_customer(customer_id)
        if customer is None:
            raise CustomerNotFoundError(customer_id)
        df = orders_to_frame(await self.store.list_orders(customer_id=customer_id))

        total_orders = len(df)
        total_spent = float(df["total_value"].sum()) if total_orders else 0.0
        summary = {
            "total_orders": total_orders,
            "total_spent": round(total_spent, 2),
            "avg_order_value": _round(df["total_value"].mean()) if total_orders else 0.0,
            "orders_by_status": {status: int(count) for status, count in df["status"].value_counts().items()},
        }

        monthly: list[dict[str, Any]] = []
        if total_orders:
            grouped = (
                df.assign(year=df["created_at"].dt.year, month=df["created_at"].dt.month)
                .groupby(["year", "month"], as_index=False)
                .agg(orders=("order_id", "count"), spent=("total_value", "sum"))
                .sort_values(["year", "month"])
                .tail(MONTHLY_TREND_LIMIT)
            )
            monthly = [
                {"year": int(r.year), "month": int(r.month), "orders": int(r.orders), "spent": round(float(r.spent), 2)}
                for r in grouped.itertuples(index=False)
            ]

        tier = calculate_loyalty_tier(total_spent)
        return {
            "customer": {
                "customer_id": customer.customer_id,
                "name": customer.name,
                "email": customer.email,
                "join_date": customer.created_at,
                "loyalty_points": customer.loyalty_points,
                "loyalty_tier": tier,
            },
            "order_summary": summary,
            "monthly_trends": monthly,
            "insights": self._customer_insights(summary, monthly, customer.created_at, now),
        }

    @staticmethod
    def _customer_insights(
        summary: dict[str, Any],
        monthly: list[dict[str, Any]],
        joined: datetime,
        now: datetime | None = None,
    ) -> list[dict[str, str]]:
        insights = []
        if summary["total_orders"] == 0:
            insights.append(
                {
                    "type": "NEW_CUSTOMER",
                    "message": "New customer - consider offering welcome discount",
                    "action": "OFFER_DISCOUNT",
                }
            )
        if summary["avg_order_value"] > HIGH_VALUE_AVERAGE_ORDER:
            insights.append(
                {
                    "type": "HIGH_VALUE",
                    "message": "High-value customer - eligible for premium services",
                    "action": "UPGRADE_SERVICE",
                }
            )
        if len(monthly) > 1 and monthly[-1]["orders"] < monthly[-2]["orders"]:
            insights.append(
                {
                    "type": "DECLINING_ACTIVITY",
                    "message": "Order frequency has decreased - consider re-engagement campaign",
                    "action": "SEND_OFFER",
                }
            )
        days_since_joined = ((now or datetime.now(timezone.utc)) - joined).days
        if days_since_joined > 365 and summary["total_orders"] > 10:
            insights.append(
                {
                    "type": "LOYAL_CUSTOMER",
                    "message": "Long-term loyal customer - consider loyalty rewards",
                    "action": "REWARD_LOYALTY",
                }
            )
        return insights

    # ------------------------------------------------------------ deliveries

    async def delivery_analytics(
        self,
        hub_id: str | None = None,
        agent_id: str | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
    ) -> dict[str, Any]:
        """Delivery KPIs, optionally scoped to a hub's agents, one agent or a creation window."""
        df = orders_to_frame(await self.store.list_orders())

        if hub_id is not None:
            if await self.store.get_hub(hub_id) is None:
                raise HubNotFoundError(hub_id)
            hub_agents = {a.agent_id for a in await self.store.list_agents(hub_id=hub_id)}
            df = df[df["delivery_agent_id"].isin(hub_agents)]
        if agent_id is not None:
            df = df[df["delivery_agent_id"] == agent_id]
        if start_date is not None:
            df = df[df["created_at"] >= _utc_timestamp(start_date)]
        if end_date is not None:
            df = df[df["created_at"] <= _utc_timestamp(end_date)]

        delivered = df[df["status"] == OrderStatus.DELIVERED.value]
        total_deliveries = len(delivered)
        total_attempts = int(df["delivery_attempts"].sum())
        avg_days = _round(_delivery_days(delivered).mean(), 1) if total_deliveries else 0.0
        on_time = int((delivered["delivered_at"] <= delivered["estimated_delivery_date"]).sum())
        on_time_rate = round(on_time / total_deliveries * 100) if total_deliveries else 0
        first_attempt_rate = round(total_deliveries / total_attempts * 100) if total_attempts else 0

        agents = await self._agent_performance(df)
        daily = []
        if total_deliveries:
            per_day = (
                delivered.assign(day=delivered["delivered_at"].dt.strftime("%Y-%m-%d"))
                .groupby("day", as_index=False)
                .agg(deliveries=("order_id", "count"), attempts=("delivery_attempts", "sum"))
                .sort_values("day")
            )
            daily = [
                {"date": r.day, "deliveries": int(r.deliveries), "attempts": int(r.attempts)}
                for r in per_day.itertuples(index=False)
            ]

        summary = {
            "total_deliveries": total_deliveries,
            "avg_delivery_days": avg_days,
            "on_time_delivery_rate": on_time_rate,
            "first_attempt_success_rate": first_attempt_rate,
        }
        logger.debug(f"Delivery analytics over {len(df)} orders: {summary}")
        return {
            "summary": summary,
            "agent_performance": agents,
            "daily_trends": daily,
            "insights": self._delivery_insights(summary, agents),
        }

    async def _agent_performance(self, df: pd.DataFrame) -> list[dict[str, Any]]:
        assigned = df[df["delivery_agent_id"].notna()]
        if assigned.empty:
            return []
        assigned = assigned.assign(
            delivered=(assigned["status"] == OrderStatus.DELIVERED.value).astype(int),
            days=_delivery_days(assigned),
        )
        grouped = (
            assigned.groupby("delivery_agent_id", as_index=False)
            .agg(assigned_orders=("order_id", "count"), total_deliveries=("delivered", "sum"), avg_days=("days", "mean"))
            .sort_values(["total_deliveries", "delivery_agent_id"], ascending=[False, True])
            .head(TOP_AGENT_LIMIT)
        )
        performance = []
        for row in grouped.itertuples(index=False):
            agent = await self.store.get_agent(row.delivery_agent_id)
            performance.append(
                {
                    "agent_id": row.delivery_agent_id,
                    "agent_name": agent.name if agent else None,
                    "assigned_orders": int(row.assigned_orders),
                    "total_deliveries": int(row.total_deliveries),
                    "avg_delivery_days": _round(row.avg_days, 1),
                }
            )
        return performance

    @staticmethod
    def _delivery_insights(summary: dict[str, Any], agents: list[dict[str, Any]]) -> list[dict[str, str]]:
        insights = []
        if summary["avg_delivery_days"] > TARGET_DELIVERY_DAYS:
            insights.append(
                {
                    "type": "PERFORMANCE_ISSUE",
                    "message": f"Average delivery time is above target ({TARGET_DELIVERY_DAYS} days)",
                    "recommendation": "Review route optimization and agent allocation",
                }
            )
        if summary["on_time_delivery_rate"] < TARGET_ON_TIME_RATE:
            insights.append(
                {
                    "type": "ON_TIME_ISSUE",
                    "message": f"On-time delivery rate is {summary['on_time_delivery_rate']}% "
                    f"(target: {TARGET_ON_TIME_RATE}%+)",
                    "recommendation": "Improve delivery time estimates and agent training",
                }
            )
        if agents and agents[0]["total_deliveries"] > agents[-1]["total_deliveries"] * 2:
            insights.append(
                {
                    "type": "PERFORMANCE_GAP",
                    "message": "Significant performance gap between agents",
                    "recommendation": "Provide additional training for underperforming agents",
                }
            )
        return insights
